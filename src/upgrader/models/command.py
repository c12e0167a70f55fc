"""Structured result of an external command."""

from pydantic import BaseModel, Field


class CommandResult(BaseModel):
    """What a package-manager or system tool invocation produced."""

    argv: list[str] = Field(..., description="Command line that was run")
    returncode: int = Field(..., description="Process exit status")
    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")

    @property
    def ok(self) -> bool:
        return self.returncode == 0
