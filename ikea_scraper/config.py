import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    def __init__(self):
        # Application settings
        self.DEBUG = os.environ.get("DEBUG", "false").lower() == "true"
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
        self.ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
        self.SENTRY_DSN = os.environ.get("SENTRY_DSN", "")

        # Retry configuration
        self.MAX_RETRIES = int(os.environ.get("MAX_RETRIES", "3"))
        self.REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "30"))
        self.RETRY_BACKOFF = float(os.environ.get("RETRY_BACKOFF", "1.5"))
        self.RETRY_BACKOFF_MAX = float(os.environ.get("RETRY_BACKOFF_MAX", "60"))

        # Crawling
        self.MAX_CONCURRENCY = int(os.environ.get("MAX_CONCURRENCY", "4"))
        self.DETAIL_CONCURRENCY = int(os.environ.get("DETAIL_CONCURRENCY", "3"))
        self.REQUEST_DELAY_MIN = float(os.environ.get("REQUEST_DELAY_MIN", "0.3"))
        self.REQUEST_DELAY_MAX = float(os.environ.get("REQUEST_DELAY_MAX", "0.8"))
        self.PROXY_URL = os.environ.get("PROXY_URL", "") or None

        # Output
        self.DATASET_PATH = os.environ.get("DATASET_PATH", "storage/dataset.jsonl")

        # Run defaults (overridden by the run input)
        self.DEFAULT_COUNTRY = os.environ.get("DEFAULT_COUNTRY", "gb")
        self.DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "en")
        self.DEFAULT_CATEGORY = os.environ.get("DEFAULT_CATEGORY", "new-products")
        self.DEFAULT_MAX_PRODUCTS = int(os.environ.get("DEFAULT_MAX_PRODUCTS", "100"))
        self.DEFAULT_MAX_PAGES = int(os.environ.get("DEFAULT_MAX_PAGES", "10"))
        self.DEFAULT_COLLECT_DETAILS = os.environ.get("DEFAULT_COLLECT_DETAILS", "true").lower() == "true"

    @property
    def has_sentry(self) -> bool:
        return bool(self.SENTRY_DSN)


# Create an instance
config = Config()
