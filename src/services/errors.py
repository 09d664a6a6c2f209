class ScraperError(Exception):
    pass


class InvalidURLError(ScraperError):
    pass


class PrivateOrUnavailableError(ScraperError):
    pass


class LoginRequiredError(ScraperError):
    pass


class FetchFailedError(ScraperError):
    pass


class NoRecipeFoundError(ScraperError):
    pass


class NetworkTimeoutError(ScraperError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds


class InvalidExportError(ScraperError):
    pass
