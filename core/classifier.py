"""Image classification gateway for photo proofs.

The tracker never looks at pixels: a classifier turns an image file into a
single label string (e.g. ``"water bottle"``) or raises a
``ClassificationError``. The bundled ``CommandClassifier`` delegates to an
external command configured in settings.yaml::

    classifier:
      command: "python3 -m my_model.predict"
      timeout: 20

The command receives ``{"image": "<path>"}`` as JSON on stdin and the
quoted image path as its last argument, and prints the top label on the
first line of stdout.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from core.models import ClassifierSettings

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Base class for classification failures."""

    message = "Classification failed."

    def __str__(self) -> str:
        return self.message


class InvalidImage(ClassificationError):
    message = "The provided image is invalid or cannot be processed."


class NoResult(ClassificationError):
    message = "No classification results were found for the image."


class UnderlyingError(ClassificationError):
    """Wraps a failure of the classifier itself."""

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause
        self.message = cause


class Classifier(Protocol):
    def classify(self, image: Path) -> str: ...


def check_image(image: Path) -> None:
    """Raise InvalidImage unless *image* is a readable, non-empty file."""
    try:
        if not image.is_file() or image.stat().st_size == 0:
            raise InvalidImage()
        if not os.access(image, os.R_OK):
            raise InvalidImage()
    except OSError as e:
        raise InvalidImage() from e


class CommandClassifier:
    """Run a shell command to label an image."""

    def __init__(self, command: str, timeout: float | None = None, cwd: Path | None = None) -> None:
        self.command = command
        self.timeout = timeout
        self.cwd = cwd

    @classmethod
    def from_settings(cls, settings: ClassifierSettings, cwd: Path | None = None) -> CommandClassifier:
        return cls(settings.command, settings.timeout, cwd)

    def classify(self, image: Path) -> str:
        if not self.command.strip():
            raise UnderlyingError("No classifier command is configured.")
        check_image(image)

        command = f"{self.command} {shlex.quote(str(image))}"
        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=json.dumps({"image": str(image)}),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except subprocess.TimeoutExpired as e:
            raise UnderlyingError(f"Classifier timed out after {self.timeout}s") from e
        except OSError as e:
            raise UnderlyingError(str(e)) from e

        if proc.returncode != 0:
            detail = proc.stderr.strip()[:512] or f"exit code {proc.returncode}"
            raise UnderlyingError(f"Classifier failed: {detail}")

        for line in proc.stdout.splitlines():
            if line.strip():
                label = line.strip()
                logger.debug("Classified %s as %r", image.name, label)
                return label
        raise NoResult()
