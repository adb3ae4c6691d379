"""Consistency checks over stored category trees, with order repair"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from category_tree.config import settings
from category_tree.models.category import Category
from category_tree.services import ordering

logger = logging.getLogger(__name__)

GroupKey = Tuple[int, str, Optional[int]]


@dataclass
class TreeIssue:
    """One broken invariant found in the stored trees"""
    kind: str  # order_gap, missing_parent, owner_mismatch, type_mismatch, cycle
    category_id: Optional[int]
    detail: str


async def _load(db: AsyncSession, owner_id: Optional[int], domain_type: Optional[str]) -> List[Category]:
    stmt = select(Category)
    if owner_id is not None:
        stmt = stmt.where(Category.owner_id == owner_id)
    if domain_type is not None:
        stmt = stmt.where(Category.domain_type == getattr(domain_type, "value", domain_type))
    stmt = stmt.order_by(Category.owner_id, Category.domain_type, Category.parent_id, Category.display_order, Category.id)
    return list((await db.execute(stmt)).scalars().all())


def _groups(nodes: List[Category]) -> Dict[GroupKey, List[Category]]:
    groups: Dict[GroupKey, List[Category]] = defaultdict(list)
    for node in nodes:
        groups[(node.owner_id, node.domain_type, node.parent_id)].append(node)
    return groups


def _has_gap(members: List[Category]) -> bool:
    orders = sorted(member.display_order for member in members)
    return orders != list(range(1, len(members) + 1))


async def check_tree(
    db: AsyncSession,
    owner_id: Optional[int] = None,
    domain_type: Optional[str] = None,
) -> List[TreeIssue]:
    """Report every sibling group and parent link that breaks the tree invariants"""
    nodes = await _load(db, owner_id, domain_type)
    by_id = {node.id: node for node in nodes}
    issues: List[TreeIssue] = []

    for (group_owner, group_type, parent_id), members in _groups(nodes).items():
        if _has_gap(members):
            orders = [member.display_order for member in members]
            issues.append(TreeIssue(
                "order_gap",
                parent_id,
                f"owner={group_owner} type={group_type} parent={parent_id} orders={orders}",
            ))

    for node in nodes:
        if node.parent_id is None:
            continue
        parent = by_id.get(node.parent_id) or await db.get(Category, node.parent_id)
        if parent is None:
            issues.append(TreeIssue("missing_parent", node.id, f"parent {node.parent_id} does not exist"))
            continue
        if parent.owner_id != node.owner_id:
            issues.append(TreeIssue("owner_mismatch", node.id, f"owner {node.owner_id} != parent owner {parent.owner_id}"))
        if parent.domain_type != node.domain_type:
            issues.append(TreeIssue("type_mismatch", node.id, f"type {node.domain_type} != parent type {parent.domain_type}"))

        seen = {node.id}
        current = parent
        while current is not None:
            if current.id in seen or len(seen) > settings.max_category_depth:
                issues.append(TreeIssue("cycle", node.id, f"parent chain revisits {current.id}"))
                break
            seen.add(current.id)
            current = by_id.get(current.parent_id) if current.parent_id is not None else None

    if issues:
        logger.warning(f"Found {len(issues)} category tree issues")
    return issues


async def repair_order(
    db: AsyncSession,
    owner_id: Optional[int] = None,
    domain_type: Optional[str] = None,
) -> int:
    """Renumber every sibling group with gaps or duplicates. Returns the number of groups fixed."""
    nodes = await _load(db, owner_id, domain_type)
    repaired = 0
    try:
        for (group_owner, group_type, parent_id), members in _groups(nodes).items():
            if _has_gap(members):
                await ordering.close_gap(db, group_owner, group_type, parent_id)
                repaired += 1
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error repairing category order: {e}")
        raise

    logger.info(f"Repaired display order of {repaired} sibling groups")
    return repaired
