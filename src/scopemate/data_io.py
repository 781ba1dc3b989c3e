"""
Data I/O utilities.

Provides thin helpers to:
- Build a requirement tree from a project definition dict / JSON file
- Turn a requirement tree back into a definition dict
- Load a task catalog from a local CSV (Excel-style usage)
- Load a project definition from Azure Blob Storage

Dependencies:
- Standard library only for local JSON / CSV.
- For Azure Blob: `azure-storage-blob` package is required.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import Config, get_config
from .errors import ProjectDefinitionError
from .schema import Node, Requirement, Task

try:
    from azure.storage.blob import BlobServiceClient  # type: ignore[import]
except ImportError:  # pragma: no cover - optional dependency
    BlobServiceClient = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# --- Definition dicts --------------------------------------------------------


def _parse_task(raw: Any) -> Task:
    if not isinstance(raw, Mapping):
        raise ProjectDefinitionError(f"Task entries must be objects, got {raw!r}")
    try:
        return Task(name=raw["name"], type=raw.get("type", ""), time=raw.get("time", 0))
    except KeyError:
        raise ProjectDefinitionError(f"Task entry is missing 'name': {raw!r}") from None
    except ValueError as e:
        raise ProjectDefinitionError(str(e)) from e


def project_from_definition(
    data: Mapping[str, Any],
    *,
    catalog: Optional[Mapping[str, Task]] = None,
) -> Requirement:
    """
    Build the requirement tree described by a definition dict.

    Expected keys:
    - tasks: list of {"name", "type", "time"}
    - requirements: {name: [{"ref": <task or requirement name>, "nb": int}]}
    - root: name of the requirement to estimate

    `catalog` provides extra tasks; tasks listed in the definition take
    precedence over catalog tasks with the same name. Requirements that are
    referenced several times resolve to the same Requirement object.
    """
    if not isinstance(data, Mapping):
        raise ProjectDefinitionError("Project definition must be a JSON object.")

    tasks: Dict[str, Task] = dict(catalog or {})
    for raw in data.get("tasks") or []:
        task = _parse_task(raw)
        tasks[task.name] = task

    raw_requirements = data.get("requirements") or {}
    if not isinstance(raw_requirements, Mapping):
        raise ProjectDefinitionError("'requirements' must map names to entry lists.")

    clashes = sorted(set(tasks) & set(raw_requirements))
    if clashes:
        raise ProjectDefinitionError(
            f"Names used for both a task and a requirement: {', '.join(clashes)}"
        )

    root_name = data.get("root")
    if not isinstance(root_name, str) or not root_name:
        raise ProjectDefinitionError("Project definition has no 'root'.")
    if root_name not in raw_requirements:
        raise ProjectDefinitionError(
            f"Root {root_name!r} is not a requirement of this definition."
        )

    built: Dict[str, Requirement] = {}
    in_progress: List[str] = []

    def resolve(name: str) -> Node:
        if name in tasks:
            return tasks[name]
        if name in built:
            return built[name]
        if name not in raw_requirements:
            raise ProjectDefinitionError(f"Unknown reference {name!r}.")
        if name in in_progress:
            cycle = " -> ".join(in_progress[in_progress.index(name):] + [name])
            raise ProjectDefinitionError(f"Requirement cycle detected: {cycle}")

        entries = raw_requirements[name]
        if not isinstance(entries, list):
            raise ProjectDefinitionError(f"Requirement {name!r} must be a list of entries.")

        in_progress.append(name)
        requirement = Requirement(name=name)
        for entry in entries:
            if not isinstance(entry, Mapping) or not isinstance(entry.get("ref"), str):
                raise ProjectDefinitionError(
                    f"Requirement {name!r}: entries need a 'ref', got {entry!r}"
                )
            child = resolve(entry["ref"])
            try:
                requirement.add(child, entry.get("nb", 1))
            except ValueError as e:
                raise ProjectDefinitionError(f"Requirement {name!r}: {e}") from e
        in_progress.pop()

        built[name] = requirement
        return requirement

    try:
        root = resolve(root_name)
    except RecursionError:
        raise ProjectDefinitionError(
            f"Requirement {root_name!r} is nested too deeply to load."
        ) from None
    logger.debug(
        "Built project %r from %d tasks and %d requirements",
        root_name,
        len(tasks),
        len(built),
    )
    return root  # type: ignore[return-value]


def definition_from_project(root: Requirement) -> Dict[str, Any]:
    """
    Turn a requirement tree into a definition dict.

    Anonymous requirements are named req1, req2, ... (an anonymous root is
    named "root"). Shared sub-requirements are emitted once. Distinct
    requirements never share a name, with each other or with a task: a
    clashing label gets a numeric suffix ("part", "part_2", ...).
    """
    tasks: Dict[str, Dict[str, Any]] = {}
    found: Dict[int, Requirement] = {}

    def collect(req: Requirement) -> None:
        if id(req) in found:
            return
        found[id(req)] = req
        for entry in req.entries:
            child = entry.child
            if isinstance(child, Task):
                tasks.setdefault(child.name, child.to_dict())
            else:
                collect(child)

    collect(root)

    taken = set(tasks)
    names: Dict[int, str] = {}
    counter = 0
    for key, req in found.items():
        base = req.name or ("root" if req is root else None)
        if base is None:
            counter += 1
            while f"req{counter}" in taken:
                counter += 1
            name = f"req{counter}"
        else:
            name, suffix = base, 1
            while name in taken:
                suffix += 1
                name = f"{base}_{suffix}"
        taken.add(name)
        names[key] = name

    requirements: Dict[str, List[Dict[str, Any]]] = {}
    for key, req in found.items():
        requirements[names[key]] = [
            {
                "ref": entry.child.name if isinstance(entry.child, Task) else names[id(entry.child)],
                "nb": entry.count,
            }
            for entry in req.entries
        ]

    return {
        "tasks": list(tasks.values()),
        "requirements": requirements,
        "root": names[id(root)],
    }


# --- Local file helpers --------------------------------------------------------


def load_project_from_json(
    path: PathLike,
    *,
    catalog: Optional[Mapping[str, Task]] = None,
) -> Requirement:
    """Load a project definition from a JSON file and build its tree."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectDefinitionError(f"{path}: invalid JSON ({e})") from e
    return project_from_definition(data, catalog=catalog)


def load_task_catalog_from_csv(path: PathLike) -> Dict[str, Task]:
    """
    Load tasks from a CSV file, keyed by name.

    Expected columns (case-sensitive):
    - Required: name, time (minutes)
    - Optional: type

    Extra columns are ignored, rows without a name are skipped.
    """
    catalog: Dict[str, Task] = {}
    with open(path, mode="r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for line_no, row in enumerate(reader, start=2):
            name = (row.get("name") or "").strip()
            if not name:
                continue
            raw_time = (row.get("time") or "").strip() or "0"
            try:
                time = float(raw_time)
            except ValueError:
                raise ProjectDefinitionError(
                    f"{path}:{line_no}: time for {name!r} is not a number: {raw_time!r}"
                )
            if time.is_integer():
                time = int(time)
            try:
                catalog[name] = Task(name=name, type=(row.get("type") or "").strip(), time=time)
            except ValueError as e:
                raise ProjectDefinitionError(f"{path}:{line_no}: {e}") from e
    return catalog


# --- Azure Blob helpers ----------------------------------------------------


def _get_blob_service(config: Optional[Config] = None):
    if BlobServiceClient is None:
        raise ImportError(
            "azure-storage-blob is required for Azure Blob operations. "
            "Install via `pip install azure-storage-blob`."
        )
    cfg = config or get_config()
    if not cfg.azure_blob_connection_string:
        raise ValueError(
            "Azure blob connection string is not configured. "
            "Set SM_AZURE_BLOB_CONNECTION_STRING or pass Config explicitly."
        )
    return BlobServiceClient.from_connection_string(
        cfg.azure_blob_connection_string
    ), cfg


def load_project_from_azure_blob(
    blob_name: str,
    *,
    container_name: Optional[str] = None,
    config: Optional[Config] = None,
    catalog: Optional[Mapping[str, Task]] = None,
) -> Requirement:
    """
    Load a project definition stored as JSON in Azure Blob Storage.

    - blob_name: name of the blob (e.g., 'projects/game.json')
    - container_name: overrides Config.azure_blob_container_name if provided
    """
    service_client, cfg = _get_blob_service(config)
    container = container_name or cfg.azure_blob_container_name
    if not container:
        raise ValueError(
            "Azure blob container name is not configured. "
            "Set SM_AZURE_BLOB_CONTAINER_NAME or pass container_name."
        )

    blob_client = service_client.get_blob_client(container=container, blob=blob_name)
    download_stream = blob_client.download_blob()
    text = download_stream.readall().decode("utf-8")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectDefinitionError(f"{container}/{blob_name}: invalid JSON ({e})") from e
    return project_from_definition(data, catalog=catalog)
