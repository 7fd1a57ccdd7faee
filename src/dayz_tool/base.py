"""
Base classes for DayZ Tool.

This module provides base classes used throughout the package.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import logging
import os
from pathlib import Path

from lxml import etree as ET

logger = logging.getLogger(__name__)


class DayZTool(ABC):
    """Base class for all DayZ tools."""

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the tool.

        Args:
            config: Optional configuration dictionary.
        """
        self.config = config or {}

    @staticmethod
    def add_standard_arguments(parser):
        """
        Add standard arguments that should be consistent across all command-line tools.

        Args:
            parser: The ArgumentParser instance to add arguments to
        """
        parser.add_argument("--profile", default=None,
                          help="Server profile to use (default: use default profile)")
        parser.add_argument("--console", action="store_true",
                          help="Log detailed output summary (in addition to regular logging)")

    @staticmethod
    def load_config(profile: Optional[str] = None, config_dir: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from a specified profile.

        Args:
            profile: Name of the profile to load. If None, uses the default profile.
            config_dir: Directory holding the profile files. If None, uses the default.

        Returns:
            The configuration dictionary.
        """
        from config.config import Config

        config_obj = Config(config_dir=config_dir, profile=profile)
        config_data = config_obj.get()

        DayZTool.configure_logging(config_data.get('general', {}).get('log_level', 'INFO'))

        return config_data

    @staticmethod
    def configure_logging(log_level: str = 'INFO') -> None:
        """
        Reset root handlers and apply the given log level.

        Args:
            log_level: Name of the logging level (DEBUG, INFO, ...).
        """
        log_level = str(log_level).upper()

        # Reset any existing handlers to avoid duplicated logs
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))

        logging.debug(f"Logging initialized with level: {log_level}")

    @abstractmethod
    def run(self, *args, **kwargs) -> Any:
        """
        Run the tool. Must be implemented by subclasses.

        Returns:
            The result of running the tool.
        """
        pass


class FileBasedTool(DayZTool):
    """Base class for tools that work with files."""

    def resolve_path(self, path: str) -> str:
        """
        Resolve a path, expanding user paths and environment variables.

        Args:
            path: The path to resolve.

        Returns:
            The resolved absolute path.
        """
        expanded_path = os.path.expanduser(os.path.expandvars(str(path)))
        return os.path.abspath(expanded_path)

    def ensure_dir(self, directory: str) -> str:
        """
        Ensure a directory exists, create it if it doesn't.

        Args:
            directory: The directory path.

        Returns:
            The absolute path to the directory.
        """
        path = Path(self.resolve_path(directory))
        os.makedirs(path, exist_ok=True)
        return str(path)

    def write_csv(self, data_rows: List, output_path: str, headers: List[str] = None) -> str:
        """
        Write data to a CSV file.

        Args:
            data_rows: List of dictionaries with data to write
            output_path: Path to the output CSV file
            headers: Optional list of header columns (if None, uses keys from first row)

        Returns:
            Absolute path to the created CSV file
        """
        import csv

        resolved_path = self.resolve_path(output_path)
        logger.debug(f"Writing CSV to {resolved_path}")

        os.makedirs(os.path.dirname(resolved_path), exist_ok=True)

        if not data_rows:
            logger.warning("No data to write to CSV.")
            with open(resolved_path, "w", newline="") as f:
                if headers:
                    writer = csv.writer(f)
                    writer.writerow(headers)
            logger.info(f"Empty CSV file created at {resolved_path}")
            return resolved_path

        if headers is None and isinstance(data_rows[0], dict):
            headers = list(data_rows[0].keys())

        with open(resolved_path, "w", newline="") as f:
            if isinstance(data_rows[0], dict) and headers:
                writer = csv.DictWriter(f, fieldnames=headers)
                writer.writeheader()
                writer.writerows(data_rows)
            else:
                writer = csv.writer(f)
                if headers:
                    writer.writerow(headers)
                writer.writerows(data_rows)

        logger.info(f"Results written to {resolved_path}")
        return resolved_path


class XMLTool(FileBasedTool):
    """Base class for tools that work with XML files."""

    def read_xml(self, file_path: str, preserve_comments: bool = False):
        """
        Read an XML file.

        Mod authors ship loosely formed files, so the parser recovers from
        errors instead of failing on the first one.

        Args:
            file_path: Path to the XML file.
            preserve_comments: Whether to preserve XML comments.

        Returns:
            The root element of the XML file.
        """
        resolved_path = self.resolve_path(file_path)
        logger.debug(f"Reading XML file: {resolved_path}")

        parser = ET.XMLParser(remove_comments=not preserve_comments,
                              remove_blank_text=True, recover=True)
        return ET.parse(resolved_path, parser=parser).getroot()

    def write_xml(self, root, file_path: str, pretty: bool = True, xml_declaration: bool = True):
        """
        Write an XML element tree to a file.

        Args:
            root: The root element to write.
            file_path: Path to the output file.
            pretty: Whether to format the XML with indentation.
            xml_declaration: Whether to include XML declaration.
        """
        resolved_path = self.resolve_path(file_path)
        logger.debug(f"Writing XML file: {resolved_path}")

        self.ensure_dir(os.path.dirname(resolved_path))

        if pretty:
            ET.indent(root, space="    ")
        xml_str = ET.tostring(
            root,
            encoding="UTF-8",
            pretty_print=pretty,
            xml_declaration=xml_declaration,
            standalone=True if xml_declaration else None,
        )

        with open(resolved_path, 'wb') as f:
            f.write(xml_str)

        logger.info(f"XML file written: {resolved_path}")


class JSONTool(FileBasedTool):
    """Base class for tools that work with JSON files."""

    def read_json(self, file_path: str) -> Any:
        """
        Read a JSON file.

        Args:
            file_path: Path to the JSON file.

        Returns:
            The parsed JSON content.

        Raises:
            json.JSONDecodeError: If the file contains invalid JSON.
            FileNotFoundError: If the file doesn't exist.
        """
        import json

        resolved_path = self.resolve_path(file_path)
        logger.debug(f"Reading JSON file: {resolved_path}")

        with open(resolved_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def write_json(self, data: Any, file_path: str, indent: int = 2) -> str:
        """
        Write data to a JSON file, replacing the previous file atomically.

        The data is written to a sibling temporary file first and then moved
        over the target, so readers never observe a half-written file.

        Args:
            data: The data to write.
            file_path: Path to the output file.
            indent: Number of spaces for indentation (default: 2).

        Returns:
            The absolute path to the written file.

        Raises:
            OSError: If the file cannot be written.
        """
        import json

        resolved_path = self.resolve_path(file_path)
        os.makedirs(os.path.dirname(resolved_path), exist_ok=True)

        temp_path = f"{resolved_path}.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=indent, sort_keys=True)
            os.replace(temp_path, resolved_path)
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)

        logger.debug(f"JSON data written to {resolved_path}")
        return resolved_path
