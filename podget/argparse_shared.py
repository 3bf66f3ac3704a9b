import argparse

def get_base_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Download podcast episodes from RSS feeds")
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)
    return parser

def add_destination_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--destination", help="Directory to download episodes into (default: PODGET_DOWNLOAD_DIRECTORY or .)", default=None)

def add_verbosity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Report progress on stdout")
    parser.add_argument("--debug", action="store_true", help="Output debug information")

def add_rerun_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-r", "--rerun", type=int, default=0, metavar="DAYS", help="Re-download files at most DAYS old (0 never overwrites)")

def add_podtrac_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--podtrac", default="", metavar='"FIELD /REGEX/"', help="Name files by the first capture group of REGEX matched against FIELD")

def add_no_tag_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--no-tag", action="store_true", help="Skip artwork download and metadata tagging")

def add_feed_urls_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("feed_urls", nargs="+", metavar="FEED_URL", help="RSS feed URL to process")
