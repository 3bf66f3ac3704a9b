import os

from dotenv import load_dotenv

from podget.workflow.config import _get_float_env, _get_int_env


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise
        loads from the default environment. After loading, sets the download directory default, HTTP
        transport settings (user agent, timeouts, retry attempts, chunk size) and download queue settings.
        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.

        Raises:
            ValueError: If a numeric environment variable cannot be parsed or is out of range.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Where episodes are archived when -d is not given
        self.PODGET_DOWNLOAD_DIRECTORY = os.getenv("PODGET_DOWNLOAD_DIRECTORY", ".")

        # HTTP transport
        self.PODGET_USER_AGENT = os.getenv(
            "PODGET_USER_AGENT", "podget/0.3 (+https://github.com/lpar/podtools)"
        )
        self.PODGET_FEED_TIMEOUT = _get_int_env("PODGET_FEED_TIMEOUT", 30, min_val=1)
        self.PODGET_DOWNLOAD_TIMEOUT = _get_int_env(
            "PODGET_DOWNLOAD_TIMEOUT", 300, min_val=1
        )
        self.PODGET_RETRY_ATTEMPTS = _get_int_env("PODGET_RETRY_ATTEMPTS", 3, min_val=0)
        self.PODGET_CHUNK_SIZE = _get_int_env("PODGET_CHUNK_SIZE", 8192, min_val=1)

        # Download queue
        self.PODGET_QUEUE_SIZE = _get_int_env("PODGET_QUEUE_SIZE", 15, min_val=1)
        self.PODGET_PACING_SECONDS = _get_float_env(
            "PODGET_PACING_SECONDS", 2.0, min_val=0.0
        )

