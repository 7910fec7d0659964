"""Dataset Scanner - Pairs caption files with their images"""
import logging
import os
import re
from typing import Dict, Iterable, List, Optional
from pydantic import BaseModel
from models import DatasetItem, ScanMode

logger = logging.getLogger(__name__)

CAPTION_EXT = ".txt"
IMAGE_EXT = ".webp"
DIGITS = re.compile(r"(\d+)")


class FilePair(BaseModel):
    """Caption/image files sharing a directory and base name"""
    base_name: str
    dir: str
    txt_path: Optional[str] = None
    webp_path: Optional[str] = None


def natural_key(value: str) -> List:
    """Sort key treating digit runs as numbers, so item2 < item10"""
    return [int(part) if part.isdigit() else part.casefold() for part in DIGITS.split(value)]


def collect_files(folder: str, recursive: bool) -> List[str]:
    files = []
    with os.scandir(folder) as entries:
        for entry in entries:
            if entry.is_dir():
                if recursive:
                    files.extend(collect_files(entry.path, recursive))
                continue
            if not entry.is_file():
                continue
            if os.path.splitext(entry.name)[1].lower() in (CAPTION_EXT, IMAGE_EXT):
                files.append(entry.path)
    return files


def pair_files(paths: Iterable[str]) -> List[FilePair]:
    """Keep only base names that have both a caption and an image"""
    pairs: Dict[str, FilePair] = {}

    for path in paths:
        base, ext = os.path.splitext(path)
        ext = ext.lower()
        if ext not in (CAPTION_EXT, IMAGE_EXT):
            continue

        directory = os.path.dirname(path)
        base_name = os.path.basename(base)
        pair = pairs.setdefault(f"{directory}::{base_name}", FilePair(base_name=base_name, dir=directory))
        if ext == CAPTION_EXT:
            pair.txt_path = path
        else:
            pair.webp_path = path

    return [pair for pair in pairs.values() if pair.txt_path and pair.webp_path]


def scan_dataset_folder(folder: str, mode: ScanMode = "recursive") -> List[DatasetItem]:
    """Load every caption/image pair under ``folder`` in natural order"""
    pairs = pair_files(collect_files(folder, recursive=mode == "recursive"))
    pairs.sort(key=lambda pair: (natural_key(pair.base_name), natural_key(pair.dir)))

    items = []
    for pair in pairs:
        with open(pair.txt_path, "r", encoding="utf-8") as f:
            text = f.read()
        items.append(DatasetItem(
            id=pair.txt_path,
            base_name=pair.base_name,
            dir=pair.dir,
            webp_path=pair.webp_path,
            txt_path=pair.txt_path,
            original_text=text,
            current_text=text,
        ))

    logger.info(f"✓ Scanned {folder} ({mode}): {len(items)} caption pair(s)")
    return items
