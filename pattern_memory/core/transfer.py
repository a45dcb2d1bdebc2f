"""Moving memories between scopes and in and out of backup files."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from pattern_memory.core.validation import validate_memory_id
from pattern_memory.protocols import (
    InvalidCategoryError,
    MemoryNotFound,
    PatternError,
    ValidationError,
)
from pattern_memory.storage.keys import scope_prefix, storage_key
from pattern_memory.types import (
    SHARED_CATEGORIES,
    VALID_CATEGORIES,
    VALID_SCOPES,
    Memory,
    MemoryCategory,
    Scope,
    format_timestamp,
    get_ttl,
    new_memory_id,
    normalize_scope,
    parse_timestamp,
    validate_scope_category,
)

EXPORT_FORMAT_VERSION = "1.0"
SHAREABLE_CATEGORIES = (MemoryCategory.LONGTERM.value, MemoryCategory.CORE.value)

EXPORT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["version", "exportedAt", "projectId", "agentId", "memories"],
    "properties": {
        "version": {"type": "string"},
        "exportedAt": {"type": "string"},
        "projectId": {"type": "string"},
        "agentId": {"type": "string"},
        "memories": {"type": "array"},
    },
}

MEMORY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": [
        "id",
        "agentId",
        "projectId",
        "scope",
        "category",
        "content",
        "createdAt",
        "updatedAt",
        "version",
    ],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "agentId": {"type": "string", "minLength": 1},
        "projectId": {"type": "string", "minLength": 1},
        "scope": {"enum": list(VALID_SCOPES)},
        "category": {"enum": list(VALID_CATEGORIES)},
        "content": {"type": "string", "minLength": 1},
        "createdAt": {"type": "string", "minLength": 1},
        "updatedAt": {"type": "string", "minLength": 1},
        "expiresAt": {"type": "string"},
        "version": {"type": "number"},
        "metadata": {"type": "object"},
    },
}

_export_validator = Draft7Validator(EXPORT_SCHEMA)
_memory_validator = Draft7Validator(MEMORY_SCHEMA)


def _schema_error(validator: Draft7Validator, instance: Any) -> Optional[str]:
    errors = sorted(validator.iter_errors(instance), key=lambda err: list(err.path))
    if not errors:
        return None
    first = errors[0]
    path = ".".join(str(part) for part in first.path) or "(root)"
    return f"{path}: {first.message}"


class TransferMixin:
    """Share, export and import memories."""

    # =========================================================================
    # SHARING
    # =========================================================================

    async def share_learning(
        self,
        memory_id: str,
        category: str = MemoryCategory.LEARNINGS.value,
        keep_original: bool = False,
    ) -> Dict[str, Any]:
        """Publish a private or personal memory to the team.

        Only ``longterm`` and ``core`` memories can be shared. The team copy
        gets a new id and keeps the original author.

        Raises:
            InvalidCategoryError: If the target category is not a team
                category or the source memory is not shareable.
            MemoryNotFound: If the memory is not in private or personal scope.
        """
        memory_id = validate_memory_id(memory_id)
        if category not in SHARED_CATEGORIES:
            raise InvalidCategoryError(
                f"Category '{category}' is not a valid team category. "
                f"Use one of: {', '.join(SHARED_CATEGORIES)}",
                details={"category": category},
            )

        original, original_key = await self._find_individual(memory_id)
        if original is None:
            raise MemoryNotFound(
                f"Memory with ID '{memory_id}' not found in private or personal scope",
                details={"memoryId": memory_id, "agentId": self.agent_id},
            )
        if original.category not in SHAREABLE_CATEGORIES:
            raise InvalidCategoryError(
                "Only 'longterm' and 'core' memories can be shared. "
                f"Found category: '{original.category}'",
                details={"memoryId": memory_id, "category": original.category},
            )

        now = self._now()
        team_memory = Memory(
            id=new_memory_id(),
            agent_id=original.agent_id,
            project_id=self.project_id,
            scope=Scope.TEAM.value,
            category=category,
            content=original.content,
            metadata=original.metadata,
            created_at=now,
            updated_at=now,
        )
        await self._store(team_memory)

        original_deleted = False
        if not keep_original:
            original_deleted = await self.store.delete(
                original_key, original.scope, self.project_id, self.agent_id
            )
        self.logger.info(
            f"Shared memory {memory_id} as team/{category} {team_memory.id} "
            f"(original deleted: {original_deleted})"
        )
        return {"teamMemoryId": team_memory.id, "originalDeleted": original_deleted}

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_memories(
        self,
        output_path: Optional[str] = None,
        scope: Optional[str] = None,
        category: Optional[str] = None,
        since: Optional[str] = None,
        include_expired: bool = False,
    ) -> Dict[str, Any]:
        """Write visible memories to a JSON backup file.

        Returns:
            ``{"exported": n, "filepath": str, "bytes": n}``
        """
        scopes = [normalize_scope(scope)] if scope else list(VALID_SCOPES)
        if category is not None and category not in VALID_CATEGORIES:
            raise InvalidCategoryError(f"Invalid category: {category!r}")
        since_dt = parse_timestamp(since, "since") if since else None

        now = self._now()
        memories: List[Memory] = []
        for s in scopes:
            for memory in await self.store.list(
                scope_prefix(s, self.agent_id), s, self.project_id, self.agent_id
            ):
                memory.scope = s
                memories.append(memory)

        if category:
            memories = [m for m in memories if m.category == category]
        if since_dt is not None:
            memories = [m for m in memories if m.updated_at > since_dt]
        if not include_expired:
            memories = [m for m in memories if not m.is_expired(now)]

        if output_path:
            filepath = Path(output_path).expanduser().resolve()
        else:
            stamp = format_timestamp(now).replace(":", "-").replace(".", "-")
            filepath = Path.cwd() / f"memories-backup-{stamp}.json"

        payload = {
            "version": EXPORT_FORMAT_VERSION,
            "exportedAt": format_timestamp(now),
            "projectId": self.project_id,
            "agentId": self.agent_id,
            "memories": [m.to_dict() for m in memories],
        }
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ValidationError(f"Failed to write export file {filepath}: {e}") from e

        size = len(text.encode("utf-8"))
        self.logger.info(f"Exported {len(memories)} memories to {filepath} ({size} bytes)")
        return {"exported": len(memories), "filepath": str(filepath), "bytes": size}

    async def import_memories(
        self,
        input_path: str,
        overwrite_existing: bool = False,
        skip_invalid: bool = True,
    ) -> Dict[str, Any]:
        """Restore memories from a backup written by :meth:`export_memories`.

        Memories keep their id, author and project. Existing ids are skipped
        unless ``overwrite_existing`` is set.

        Raises:
            ValidationError: If the file is unreadable or not an export, or on
                the first bad entry when ``skip_invalid`` is False.
        """
        filepath = Path(input_path).expanduser().resolve()
        try:
            text = filepath.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationError(
                f"Failed to read import file: {e}", details={"filepath": str(filepath)}
            ) from e
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ValidationError(
                f"Invalid JSON format: {e}", details={"filepath": str(filepath)}
            ) from e

        problem = _schema_error(_export_validator, data)
        if problem:
            raise ValidationError(
                f"Invalid export format: {problem}", details={"filepath": str(filepath)}
            )
        if data["version"] != EXPORT_FORMAT_VERSION:
            self.logger.warning(
                f"Import file version {data['version']} differs from {EXPORT_FORMAT_VERSION}"
            )

        imported = 0
        skipped = 0
        errors: List[str] = []

        def _reject(message: str, cause: Optional[Exception] = None) -> None:
            nonlocal skipped
            errors.append(message)
            if not skip_invalid:
                if isinstance(cause, PatternError):
                    raise cause
                raise ValidationError(message)
            skipped += 1

        for raw in data["memories"]:
            label = raw.get("id", "unknown") if isinstance(raw, dict) else "unknown"
            problem = _schema_error(_memory_validator, raw)
            if problem:
                _reject(f"Invalid memory structure: {label} ({problem})")
                continue
            try:
                validate_scope_category(raw["scope"], raw["category"])
                memory = Memory.from_dict(raw)
            except PatternError as e:
                _reject(f"Memory {label}: {e}", e)
                continue

            key = storage_key(memory.scope, memory.agent_id, memory.category, memory.id)
            try:
                await self.store.ensure(memory.scope, memory.project_id, memory.agent_id)
                exists = not overwrite_existing and (
                    await self.store.get(key, memory.scope, memory.project_id, memory.agent_id)
                    is not None
                )
                if not exists:
                    await self.store.set(key, memory, ttl_seconds=get_ttl(memory.category))
            except PatternError as e:
                _reject(f"Failed to import memory {memory.id}: {e}", e)
                continue
            if exists:
                _reject(f"Memory {memory.id} already exists (use overwriteExisting to replace)")
                continue
            imported += 1

        self.logger.info(f"Imported {imported} memories, skipped {skipped}")
        return {"imported": imported, "skipped": skipped, "errors": errors}
