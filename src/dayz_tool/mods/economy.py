"""
Central Economy Registrar

Copies a mod's Central Economy definitions (types, spawnabletypes, events)
into the server mission and registers them in ``cfgeconomycore.xml``:

    <!-- mymod -->
    <ce folder="mymod_ce">
        <file name="mymod_types.xml" type="types"/>
        <file name="mymod_cfgspawnabletypes.xml" type="spawnabletypes"/>
        <file name="mymod_events.xml" type="events"/>
    </ce>
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from lxml import etree as ET

from ..base import XMLTool
from ..errors import DayZToolError

logger = logging.getLogger(__name__)

ECONOMY_CORE_FILE = "cfgeconomycore.xml"
SERVER_CONFIG_FILE = "serverDZ.cfg"

TEMPLATE_PATTERN = re.compile(r'template\s*=\s*"([^"]+)"')
MAP_NAME_PATTERN = re.compile(r'(\w+\.\w+)')
XML_DECLARATION_PATTERN = re.compile(r'<\?xml[^>]*\?>')

# (file kind, root tag, child tag, output suffix, economycore type)
CE_KINDS = (
    ("types", "types", "type", "types.xml", "types"),
    ("spawnabletypes", "spawnabletypes", "type", "cfgspawnabletypes.xml", "spawnabletypes"),
    ("events", "events", "event", "events.xml", "events"),
)


def short_name(name: str) -> str:
    """Lower-case alphanumeric form of a mod name (``@Mod-Name 2`` -> ``modname2``)."""
    return re.sub(r'[^a-z0-9]', '', name.lower())


def classify_ce_file(filename: str) -> Optional[str]:
    lowered = filename.lower()
    if not lowered.endswith(".xml"):
        return None
    if "spawnabletypes" in lowered:
        return "spawnabletypes"
    if "types" in lowered and "spawnable" not in lowered:
        return "types"
    if "events" in lowered and "eventspawns" not in lowered:
        return "events"
    return None


def find_types_folder(mod_path: Path) -> Optional[Path]:
    """First folder below ``mod_path`` holding a file whose name contains ``types``."""
    for path in sorted(Path(mod_path).rglob("*")):
        if path.is_file() and "types" in path.name.lower() and path.suffix.lower() == ".xml":
            return path.parent
    return None


class EconomyRegistrar(XMLTool):
    """
    Registers and unregisters mod Central Economy files for one server.

    Usage:
        registrar = EconomyRegistrar(profile)
        folder = registrar.register("1559212036", "Community Framework", mod_path)
        registrar.unregister(folder)
    """

    def __init__(self, profile, config: Optional[Dict] = None) -> None:
        super().__init__(config)
        self.profile = profile

    def run(self, mod_id: str, name: str, mod_path: Path) -> Optional[str]:
        return self.register(mod_id, name, mod_path)

    def mission_name(self) -> str:
        """
        The mission folder, from the profile or the ``template`` of serverDZ.cfg.

        Raises:
            DayZToolError: If no mission can be determined.
        """
        if self.profile.mission:
            return self.profile.mission
        cfg_path = self.profile.server_path / SERVER_CONFIG_FILE
        if not cfg_path.is_file():
            raise DayZToolError(f"Cannot determine mission: {cfg_path} not found")
        contents = cfg_path.read_text(encoding='utf-8', errors='replace')
        match = TEMPLATE_PATTERN.search(contents) or MAP_NAME_PATTERN.search(contents)
        if not match:
            raise DayZToolError(f"Cannot determine mission from {cfg_path}")
        return match.group(1)

    def mission_path(self) -> Path:
        return self.profile.server_path / "mpmissions" / self.mission_name()

    def extract_elements(self, file_path: Path, tag: str) -> List:
        """
        Collect every ``tag`` element of a CE file.

        Mod authors often ship fragments without the root element, so the
        content is wrapped before parsing.
        """
        text = Path(file_path).read_text(encoding='utf-8', errors='replace')
        text = XML_DECLARATION_PATTERN.sub('', text)
        parser = ET.XMLParser(remove_blank_text=True, remove_comments=True, recover=True)
        wrapper = ET.fromstring(f"<wrapper>{text}</wrapper>".encode('utf-8'), parser=parser)
        if wrapper is None:
            return []
        return [el for el in wrapper.iter(tag)]

    def analyze_types_folder(self, folder: Path) -> Dict[str, List]:
        """Map each CE kind to the elements found in ``folder``."""
        found: Dict[str, List] = {kind: [] for kind, *_ in CE_KINDS}
        tags = {kind: child for kind, _, child, _, _ in CE_KINDS}
        for path in sorted(folder.iterdir()):
            if not path.is_file():
                continue
            kind = classify_ce_file(path.name)
            if kind is None:
                continue
            elements = self.extract_elements(path, tags[kind])
            logger.debug(f"Found {len(elements)} {kind} entries in {path.name}")
            found[kind].extend(elements)
        return found

    def register(self, mod_id: str, name: str, mod_path: Path) -> Optional[str]:
        """
        Extract and register the CE files of one mod.

        Returns:
            The short name used for the ``<short>_ce`` folder, or None when the
            mod ships no CE files.
        """
        types_folder = find_types_folder(mod_path)
        if types_folder is None:
            logger.debug(f"No types folder found for mod {mod_id}")
            return None

        found = self.analyze_types_folder(types_folder)
        if not any(found.values()):
            logger.info(f"No types, spawnable types or events found for mod {mod_id}")
            return None

        short = short_name(name) or mod_id
        mission = self.mission_path()
        ce_folder = mission / f"{short}_ce"
        self.ensure_dir(str(ce_folder))

        files = []
        for kind, root_tag, _, suffix, ce_type in CE_KINDS:
            if not found[kind]:
                continue
            root = ET.Element(root_tag)
            for element in found[kind]:
                root.append(element)
            filename = f"{short}_{suffix}"
            self.write_xml(root, str(ce_folder / filename))
            files.append((filename, ce_type))

        self._write_economy_core(mission, short, files)
        logger.info(f"Registered {len(files)} CE files for mod {mod_id} in {mission.name}")
        return short

    def unregister(self, short: str) -> None:
        """Remove the ``<short>_ce`` block and folder from the mission."""
        mission = self.mission_path()
        self._write_economy_core(mission, short, [])
        ce_folder = mission / f"{short}_ce"
        if ce_folder.is_dir():
            shutil.rmtree(ce_folder)
        logger.info(f"Removed CE entries for {short}")

    def _write_economy_core(self, mission: Path, short: str, files: List) -> None:
        """Drop any existing block for ``short`` and append a new one when ``files`` is set."""
        core_path = mission / ECONOMY_CORE_FILE
        if not core_path.is_file():
            raise DayZToolError(f"{ECONOMY_CORE_FILE} not found in {mission}")

        try:
            root = self.read_xml(str(core_path), preserve_comments=True)
        except ET.LxmlError as e:
            raise DayZToolError(f"Cannot parse {core_path}: {e}") from e
        if root is None:
            raise DayZToolError(f"Cannot parse {core_path}")
        folder_name = f"{short}_ce"
        for child in list(root):
            if child.tag is ET.Comment and (child.text or "").strip() == short:
                root.remove(child)
            elif child.tag == "ce" and child.get("folder") == folder_name:
                root.remove(child)

        if files:
            root.append(ET.Comment(f" {short} "))
            ce = ET.SubElement(root, "ce", folder=folder_name)
            for filename, ce_type in files:
                ET.SubElement(ce, "file", name=filename, type=ce_type)

        self.write_xml(root, str(core_path))
