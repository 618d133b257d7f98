"""Orchestrator wiring the sheet parser and the flattener together.

:class:`ExcelConverter` is the main entry point: it owns one config and one
classifier and runs both stages.  Use :func:`create_default_converter` for a
ready-made instance.
"""

from __future__ import annotations

import logging
import pathlib
import time

from marketflat.classifier import KeywordClassifier
from marketflat.config import ConverterConfig
from marketflat.flattener import Flattener
from marketflat.models import ConvertedExcelData, ParsedExcelData
from marketflat.protocols import LabelClassifier
from marketflat.sheet_parser import Clock, SheetParser

logger = logging.getLogger("marketflat")


class ExcelConverter:
    """Runs parse and flatten over workbook bytes.

    Parameters
    ----------
    config:
        Pipeline configuration.  Defaults to ``ConverterConfig()``.
    classifier:
        Any :class:`~marketflat.protocols.LabelClassifier`.  Defaults to a
        :class:`~marketflat.classifier.KeywordClassifier` over *config*.
    clock:
        Callable returning the current ``datetime``; used for the
        ``uploaded_at`` / ``parsed_at`` stamps.  Inject a fixed clock to get
        byte-identical output across runs.
    """

    def __init__(
        self,
        config: ConverterConfig | None = None,
        classifier: LabelClassifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or ConverterConfig()
        self._classifier = classifier or KeywordClassifier(self._config)
        self._parser = SheetParser(self._config, self._classifier, clock)
        self._flattener = Flattener(self._config, self._classifier)

    @property
    def config(self) -> ConverterConfig:
        return self._config

    def parse(
        self, data: bytes, file_name: str, file_size: int | None = None
    ) -> ParsedExcelData:
        return self._parser.parse(data, file_name, file_size)

    def flatten(self, parsed: ParsedExcelData) -> ConvertedExcelData:
        return self._flattener.flatten(parsed)

    def convert(
        self, data: bytes, file_name: str, file_size: int | None = None
    ) -> ConvertedExcelData:
        """Parse then flatten *data*.

        Raises:
            ParseError: No usable sheet could be read.
            StructuralInvalidError: The parsed workbook is malformed.
        """
        start = time.monotonic()
        logger.info("Converting %s (%d bytes)", file_name, len(data))
        converted = self.flatten(self.parse(data, file_name, file_size))
        logger.info(
            "Converted %s: %d rows, %d issues in %.3fs",
            file_name,
            converted.summary.total_rows,
            len(converted.issues),
            time.monotonic() - start,
        )
        return converted

    def convert_file(self, path: str | pathlib.Path) -> ConvertedExcelData:
        """Read *path* and convert it; the file name is the path's basename."""
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        data = file_path.read_bytes()
        return self.convert(data, file_path.name, len(data))


def create_default_converter(**overrides) -> ExcelConverter:
    """Create an :class:`ExcelConverter` with the keyword classifier.

    Recognised keyword arguments are ``config``, ``classifier`` and
    ``clock``; any other keyword is passed to :class:`ConverterConfig`.
    """
    converter_keys = {"config", "classifier", "clock"}
    converter_kwargs = {k: v for k, v in overrides.items() if k in converter_keys}
    config_kwargs = {k: v for k, v in overrides.items() if k not in converter_keys}

    config = converter_kwargs.pop("config", None)
    if config is None:
        config = ConverterConfig(**config_kwargs)

    return ExcelConverter(config=config, **converter_kwargs)
