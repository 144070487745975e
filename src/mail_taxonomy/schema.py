"""Schema resolution: business types -> canonical folder tree.

Objective:
    Turn a tenant's business type(s) plus its current team data into the
    :class:`~src.mail_taxonomy.models.FolderTree` the provider must contain,
    and derive the :class:`~src.mail_taxonomy.models.ExpectedCategorySet` the
    downstream classifier is allowed to route into.

Responsibilities:
    - Merge the base taxonomy with one or more business-type extensions.
    - Validate names (non-empty, no ``/``, unique among siblings).
    - Inject one ``MANAGER`` child per team member and one ``SUPPLIERS``
      child per supplier, subject to the configured caps.

High-level call tree:
    - :func:`resolve_folder_tree` -> :class:`SchemaResolver`
        - :meth:`SchemaResolver.resolve`
            - :meth:`SchemaResolver._merge_extensions`
            - :meth:`SchemaResolver._build_node`
            - :meth:`SchemaResolver._inject_dynamic`
    - :func:`expected_category_set`

Operational notes:
    - Resolution is pure: no network calls, no store access. A
      :class:`~src.mail_taxonomy.errors.SchemaError` therefore always aborts a
      run before anything remote happens.
"""

from copy import deepcopy
from typing import Any, Iterable, Optional, Union
import logging

from .config import (
    FolderKind,
    MANAGER_CATEGORY,
    SUPPLIERS_CATEGORY,
    Settings,
    UNASSIGNED_FOLDER,
    get_settings,
)
from .errors import SchemaError
from .models import (
    ExpectedCategorySet,
    FolderSpec,
    FolderTree,
    PATH_SEPARATOR,
    Supplier,
    TeamMember,
)
from .taxonomy import (
    BASE_CATEGORIES,
    BASE_PROVISIONING_ORDER,
    BUSINESS_EXTENSIONS,
    available_business_types,
)

logger = logging.getLogger(__name__)

BusinessTypes = Union[str, Iterable[str]]


def _sub_name(entry: Any) -> str:
    if isinstance(entry, dict):
        return entry.get("name", "")
    return entry


def _merge_subs(current: list, incoming: list) -> list:
    """Union two subfolder lists, keeping first-seen order.

    Nested entries with the same name (case-insensitive) are merged
    recursively.
    """
    merged = list(current)
    index = {str(_sub_name(entry)).lower(): i for i, entry in enumerate(merged)}
    for entry in incoming:
        key = str(_sub_name(entry)).lower()
        if key not in index:
            index[key] = len(merged)
            merged.append(deepcopy(entry))
            continue
        existing = merged[index[key]]
        if isinstance(entry, dict) and entry.get("sub"):
            existing_subs = existing.get("sub", []) if isinstance(existing, dict) else []
            merged[index[key]] = {
                "name": _sub_name(existing),
                "sub": _merge_subs(existing_subs, entry["sub"]),
            }
    return merged


class SchemaResolver:
    """
    Resolve business types and team data into a :class:`FolderTree`.

    Args:
        settings: Settings providing the dynamic folder caps.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def resolve(
        self,
        business_types: BusinessTypes,
        managers: Optional[Iterable[Union[TeamMember, str]]] = None,
        suppliers: Optional[Iterable[Union[Supplier, str]]] = None,
    ) -> FolderTree:
        """
        Build the canonical folder tree.

        Args:
            business_types: One business type key or a list of them. The
                first type's extension wins on ordering and overrides; later
                types only add folders.
            managers: Team members (objects or plain names).
            suppliers: Suppliers (objects or plain names).

        Returns:
            FolderTree: Tree with top-level categories in provisioning order.

        Raises:
            SchemaError: Unknown business type, malformed extension, invalid
                or duplicate folder names.
        """
        types = self._normalize_types(business_types)
        categories, order = self._merge_extensions(types)

        roots = [
            self._build_node(category, parent_path=None, depth=0)
            for category in self._ordered(categories, order)
        ]
        tree = FolderTree(business_types=types, roots=roots)

        manager_root = tree.root(MANAGER_CATEGORY)
        supplier_root = tree.root(SUPPLIERS_CATEGORY)
        if manager_root is None or supplier_root is None:
            raise SchemaError(
                f"Schema for {types} must keep the {MANAGER_CATEGORY} and "
                f"{SUPPLIERS_CATEGORY} categories"
            )
        self._ensure_unassigned(manager_root)

        tree.dynamic_names = self._inject_dynamic(
            manager_root,
            [m.name if isinstance(m, TeamMember) else m for m in managers or []],
            FolderKind.DYNAMIC_TEAM,
            self.settings.max_managers,
        )
        tree.dynamic_names += self._inject_dynamic(
            supplier_root,
            [s.name if isinstance(s, Supplier) else s for s in suppliers or []],
            FolderKind.DYNAMIC_SUPPLIER,
            self.settings.max_suppliers,
        )
        logger.debug("Resolved %d folders for %s", len(tree.paths()), types)
        return tree

    @staticmethod
    def _normalize_types(business_types: BusinessTypes) -> list[str]:
        if isinstance(business_types, str):
            business_types = [business_types]
        types = [t.strip() for t in business_types if t and t.strip()]
        if not types:
            raise SchemaError("At least one business type is required")
        return types

    @staticmethod
    def _lookup_extension(business_type: str) -> dict:
        wanted = business_type.lower()
        for key, extension in BUSINESS_EXTENSIONS.items():
            if key.lower() == wanted:
                return extension
        raise SchemaError(
            f"Unknown business type: {business_type!r} "
            f"(known: {', '.join(available_business_types())})"
        )

    def _merge_extensions(self, types: list[str]) -> tuple[list[dict], list[str]]:
        categories = deepcopy(BASE_CATEGORIES)
        order = list(BASE_PROVISIONING_ORDER)
        applied: list[int] = []

        for business_type in types:
            extension = self._lookup_extension(business_type)
            if id(extension) in applied:
                continue
            applied.append(id(extension))
            merge = len(applied) > 1
            self._apply_extension(extension, categories, order, merge=merge)
            if not merge and extension.get("provisioning_order"):
                order = list(extension["provisioning_order"])
        return categories, order

    @staticmethod
    def _find_category(categories: list[dict], name: str, business_type: str) -> dict:
        wanted = name.lower()
        for category in categories:
            if category["name"].lower() == wanted:
                return category
        raise SchemaError(
            f"Extension {business_type!r} references unknown category {name!r}"
        )

    def _apply_extension(
        self, extension: dict, categories: list[dict], order: list[str], merge: bool
    ) -> None:
        business_type = extension.get("business_type", "?")

        for old, new in (extension.get("renames") or {}).items():
            category = self._find_category(categories, old, business_type)
            category["name"] = new
            order[:] = [new if o.lower() == old.lower() else o for o in order]

        for name, override in (extension.get("overrides") or {}).items():
            if not isinstance(override, dict):
                raise SchemaError(f"Override for {name!r} in {business_type!r} must be a mapping")
            category = self._find_category(categories, name, business_type)
            if "sub" in override:
                if merge:
                    category["sub"] = _merge_subs(category.get("sub", []), override["sub"])
                else:
                    category["sub"] = deepcopy(override["sub"])
            if override.get("color") and not merge:
                category["color"] = override["color"]

        for name, extra in (extension.get("extend") or {}).items():
            category = self._find_category(categories, name, business_type)
            category["sub"] = _merge_subs(category.get("sub", []), extra)

        for addition in extension.get("additions") or []:
            if not isinstance(addition, dict) or not addition.get("name"):
                raise SchemaError(f"Malformed addition in {business_type!r}: {addition!r}")
            existing = next(
                (c for c in categories if c["name"].lower() == addition["name"].lower()), None
            )
            if existing is not None:
                existing["sub"] = _merge_subs(existing.get("sub", []), addition.get("sub", []))
                continue
            categories.append(deepcopy(addition))
            if addition["name"].lower() not in {o.lower() for o in order}:
                order.append(addition["name"])

    @staticmethod
    def _ordered(categories: list[dict], order: list[str]) -> list[dict]:
        by_name = {c["name"].lower(): c for c in categories}
        ordered: list[dict] = []
        seen: set[str] = set()
        for name in order:
            key = name.lower()
            if key in by_name and key not in seen:
                ordered.append(by_name[key])
                seen.add(key)
        # Categories missing from the order keep declaration order.
        for category in categories:
            if category["name"].lower() not in seen:
                ordered.append(category)
                seen.add(category["name"].lower())
        return ordered

    @staticmethod
    def _validate_name(name: Any, parent_path: Optional[str]) -> str:
        where = parent_path or "<root>"
        if not isinstance(name, str) or not name.strip():
            raise SchemaError(f"Empty folder name under {where}")
        name = name.strip()
        if PATH_SEPARATOR in name:
            raise SchemaError(f"Folder name {name!r} under {where} contains {PATH_SEPARATOR!r}")
        if "{{" in name:
            raise SchemaError(f"Unresolved placeholder in folder name {name!r}")
        return name

    def _build_node(self, entry: Any, parent_path: Optional[str], depth: int) -> FolderSpec:
        if isinstance(entry, dict):
            raw_name, subs, color = entry.get("name"), entry.get("sub") or [], entry.get("color")
        else:
            raw_name, subs, color = entry, [], None

        name = self._validate_name(raw_name, parent_path)
        node = FolderSpec(
            name=name,
            kind=FolderKind.CORE,
            depth=depth,
            parent_path=parent_path,
            color=color if depth == 0 else None,
        )
        for sub in subs:
            self._add_child(node, self._build_node(sub, node.path, depth + 1))
        return node

    @staticmethod
    def _add_child(parent: FolderSpec, child: FolderSpec) -> None:
        lowered = child.name.lower()
        if any(existing.name.lower() == lowered for existing in parent.children):
            raise SchemaError(f"Duplicate folder {child.name!r} under {parent.path}")
        parent.children.append(child)

    def _ensure_unassigned(self, manager_root: FolderSpec) -> None:
        if manager_root.children and any(
            c.name.lower() == UNASSIGNED_FOLDER.lower() for c in manager_root.children
        ):
            return
        manager_root.children.insert(
            0,
            FolderSpec(
                name=UNASSIGNED_FOLDER,
                depth=manager_root.depth + 1,
                parent_path=manager_root.path,
            ),
        )

    def _inject_dynamic(
        self, parent: FolderSpec, names: list[str], kind: FolderKind, cap: int
    ) -> list[str]:
        """Add team folders under ``parent``; return the names kept.

        A name matching an existing child (any case) reuses that folder.
        """
        cleaned: list[str] = []
        seen: set[str] = set()
        for raw in names:
            if not isinstance(raw, str) or not raw.strip():
                continue
            name = raw.strip()
            if name.lower() in seen:
                logger.debug("Ignoring repeated %s name %r", kind.value, name)
                continue
            seen.add(name.lower())
            cleaned.append(name)

        if len(cleaned) > cap:
            logger.warning(
                "%d %s names exceed the limit of %d; dropping %s",
                len(cleaned),
                kind.value,
                cap,
                cleaned[cap:],
            )
            cleaned = cleaned[:cap]

        existing = {child.name.lower() for child in parent.children}
        for name in cleaned:
            self._validate_name(name, parent.path)
            if name.lower() in existing:
                logger.info("%s folder %r already exists under %s", kind.value, name, parent.path)
                continue
            self._add_child(
                parent,
                FolderSpec(name=name, kind=kind, depth=parent.depth + 1, parent_path=parent.path),
            )
        return cleaned


def resolve_folder_tree(
    business_types: BusinessTypes,
    managers: Optional[Iterable[Union[TeamMember, str]]] = None,
    suppliers: Optional[Iterable[Union[Supplier, str]]] = None,
    settings: Optional[Settings] = None,
) -> FolderTree:
    """Convenience wrapper around :meth:`SchemaResolver.resolve`."""
    return SchemaResolver(settings).resolve(business_types, managers, suppliers)


def expected_category_set(tree: FolderTree) -> ExpectedCategorySet:
    """
    Derive the names the classifier may route into.

    Args:
        tree: Resolved tree, including current team data.

    Returns:
        ExpectedCategorySet: Lowercased top-level, subfolder and dynamic names.
    """
    expected = ExpectedCategorySet()
    for node in tree.walk():
        name = node.name.lower()
        if node.depth == 0:
            expected.top_level.add(name)
        elif node.is_dynamic:
            expected.dynamic.add(name)
        else:
            expected.subfolders.add(name)
    expected.dynamic.update(name.lower() for name in tree.dynamic_names)
    return expected
