from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


class CLIError(RuntimeError):
    def __init__(self, message: str, exit_code: int = EXIT_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ValidationError(CLIError):
    pass


class DuplicateSkillError(ValidationError):
    pass


class FileSystemError(CLIError):
    pass


class GitError(CLIError):
    pass


class PromptInterrupted(Exception):
    """Raised when the user aborts an interactive prompt (Ctrl-C or EOF)."""
