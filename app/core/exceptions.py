class GitHubAPIError(Exception):
    # status_code is None when GitHub could not be reached at all
    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"GitHub API error ({status_code}): {detail}")


class TLSConfigurationError(Exception):
    pass
