"""
External document converter (LibreOffice ``soffice``) invocation.

The executable is found through a ConverterLocator so the conversion code can
run against a stand-in executable when LibreOffice is not installed.
"""

import asyncio
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import CONVERTER_EXECUTABLE_NAMES, KNOWN_CONVERTER_PATHS
from .error_handling import ErrorCode, QuickConvertError
from .logging_config import get_logger

logger = get_logger()


class ConverterError(QuickConvertError):
    """Base class for external converter failures."""
    error_code = ErrorCode.CONVERSION_FAILED


class ConverterNotFoundError(ConverterError):
    error_code = ErrorCode.CONVERTER_NOT_FOUND


class ConverterProcessError(ConverterError):
    """The converter exited with a non-zero status."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class ConverterTimeoutError(ConverterError):
    pass


class MissingOutputError(ConverterError):
    """The converter exited cleanly but the expected file is not there."""
    error_code = ErrorCode.NO_OUTPUT

    def __init__(self, message: str, expected_path: Optional[str] = None):
        super().__init__(message)
        self.expected_path = expected_path


class ConverterLocator(ABC):
    """Finds the converter executable."""

    @abstractmethod
    def locate(self) -> str:
        """
        Return the path of the executable.

        Raises:
            ConverterNotFoundError: If no executable can be found
        """
        pass


class SofficeLocator(ConverterLocator):
    """Tries well-known install paths in order, then the PATH."""

    def __init__(self, candidates: Sequence[str] = KNOWN_CONVERTER_PATHS,
                 names: Sequence[str] = CONVERTER_EXECUTABLE_NAMES):
        self.candidates = list(candidates)
        self.names = list(names)
        self._cached: Optional[str] = None

    def locate(self) -> str:
        if self._cached and os.path.exists(self._cached):
            return self._cached

        for candidate in self.candidates:
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                logger.debug(f"Using converter at known location {candidate}")
                self._cached = candidate
                return candidate

        for name in self.names:
            found = shutil.which(name)
            if found:
                logger.debug(f"Using converter {name} found on PATH at {found}")
                self._cached = found
                return found

        raise ConverterNotFoundError(
            "LibreOffice (soffice) was not found. Install LibreOffice or add it to the PATH."
        )


def expected_output_path(input_path: str, target_format: str, outdir: str) -> str:
    """
    Path LibreOffice writes to for ``--convert-to target_format``.

    The output keeps the input's stem and takes the extension of the target
    format (the part before any ``:filter`` suffix).
    """
    extension = target_format.split(":", 1)[0]
    return str(Path(outdir) / f"{Path(input_path).stem}.{extension}")


class ExternalConverter:
    """Runs the external converter as a subprocess, one call per conversion."""

    def __init__(self, locator: Optional[ConverterLocator] = None, timeout: Optional[float] = None):
        self.locator = locator or SofficeLocator()
        self.timeout = timeout

    async def run(self, args: Sequence[str]) -> str:
        """
        Run the converter with the given arguments and wait for it to exit.

        Returns:
            Standard output text

        Raises:
            ConverterNotFoundError: If the executable cannot be located or started
            ConverterProcessError: On a non-zero exit (carries stderr, else stdout)
            ConverterTimeoutError: If a timeout is configured and exceeded
        """
        executable = self.locator.locate()
        cmd = [executable, *args]
        logger.debug(f"Running converter: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ConverterNotFoundError(f"Could not start converter {executable}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ConverterTimeoutError(f"Converter did not finish within {self.timeout} seconds")

        out_text = stdout.decode("utf-8", errors="replace")
        err_text = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            output = err_text.strip() or out_text.strip() or f"exit status {process.returncode}"
            raise ConverterProcessError(
                f"Converter failed: {output}", returncode=process.returncode, output=output
            )

        return out_text

    async def convert(self, input_path: str, target_format: str, outdir: str,
                      infilter: Optional[str] = None) -> str:
        """
        Convert one file and return the path of the produced file.

        Raises:
            MissingOutputError: If the converter exits cleanly without writing
                the expected output
        """
        args = ["--headless"]
        if infilter:
            args.append(f"--infilter={infilter}")
        args += ["--convert-to", target_format, "--outdir", str(outdir), str(input_path)]

        await self.run(args)

        output_path = expected_output_path(input_path, target_format, outdir)
        if not os.path.exists(output_path):
            raise MissingOutputError(
                "Conversion failed: the converter did not produce an output file.",
                expected_path=output_path,
            )
        return output_path

    async def render_pages(self, input_path: str, outdir: str) -> List[str]:
        """
        Render a document to PNG and collect every image it produced.

        Returns:
            Sorted paths of PNG files in outdir named after the input's stem;
            empty if nothing was rendered
        """
        await self.run(["--headless", "--convert-to", "png", "--outdir", str(outdir), str(input_path)])

        stem = Path(input_path).stem
        return sorted(
            str(path) for path in Path(outdir).iterdir()
            if path.is_file() and path.name.startswith(stem) and path.suffix.lower() == ".png"
        )

    def check_available(self) -> bool:
        try:
            self.locator.locate()
            return True
        except ConverterNotFoundError:
            return False
