"""
Layered (Sugiyama-style) auto-layout over the geometry cache.

Node sizes come from the cached rects; node-to-node edges are derived from
link endpoints through recorded pin ownership.  The result is a list of new
top-left positions; applying them is left to the host, which reports the new
rects back as usual.

Steps:
1. Cycle removal (reverse back-edges found by DFS)
2. Layer assignment (longest path from sources)
3. Virtual node insertion for edges spanning several layers
4. Crossing minimization (barycenter heuristic, multi-pass)
5. Coordinate assignment, each layer centered on the widest one
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Hashable, Iterable, NamedTuple

from nodegraph_mcp.geometry import GeometryCache
from nodegraph_mcp.models import HasEndpoints


class NodePosition(NamedTuple):
    id: int
    x: float
    y: float


@dataclass
class LayeredLayoutConfig:
    """Configuration for the layered layout."""
    rank_spacing: float = 100      # Space between layers
    node_spacing: float = 60       # Space between nodes in the same layer
    barycenter_iterations: int = 4
    start_x: float = 0
    start_y: float = 0
    direction: str = "LR"          # LR (layers left to right) or TB


@dataclass
class _Node:
    key: Hashable
    width: float
    height: float
    rank: int = 0
    order: float = 0
    x: float = 0
    y: float = 0
    is_virtual: bool = False


def node_edges(cache: GeometryCache, links: Iterable[HasEndpoints]) -> list[tuple[int, int]]:
    """Distinct ``(source_node, target_node)`` pairs; self-loops and unknown pins are skipped."""
    edges: set[tuple[int, int]] = set()
    for link in links:
        start = cache.pin(link.start_pin_id)
        end = cache.pin(link.end_pin_id)
        if start is None or end is None or start.node_id == end.node_id:
            continue
        edges.add((start.node_id, end.node_id))
    return sorted(edges)


def layered_layout(
    sizes: dict[int, tuple[float, float]],
    edges: list[tuple[int, int]],
    config: LayeredLayoutConfig | None = None,
) -> list[NodePosition]:
    """Lay out nodes of the given ``(width, height)`` sizes.

    Edges referring to unknown nodes are ignored.  Returns positions sorted by
    node ID.
    """
    cfg = config or LayeredLayoutConfig()
    if not sizes:
        return []

    all_ids = sorted(sizes)
    adj: dict[Hashable, list[Hashable]] = defaultdict(list)
    edge_list = [(s, t) for s, t in edges if s in sizes and t in sizes and s != t]
    for src, tgt in edge_list:
        adj[src].append(tgt)

    nodes: dict[Hashable, _Node] = {
        nid: _Node(key=nid, width=sizes[nid][0], height=sizes[nid][1]) for nid in all_ids
    }

    # --- Step 1: Cycle removal ---
    back_edges = _find_back_edges(all_ids, adj)
    effective_adj: dict[Hashable, list[Hashable]] = defaultdict(list)
    effective_rev: dict[Hashable, list[Hashable]] = defaultdict(list)
    oriented: list[tuple[Hashable, Hashable]] = []
    for src, tgt in edge_list:
        if (src, tgt) in back_edges:
            src, tgt = tgt, src
        effective_adj[src].append(tgt)
        effective_rev[tgt].append(src)
        oriented.append((src, tgt))

    # --- Step 2: Layer assignment ---
    ranks = _assign_ranks_longest_path(all_ids, effective_adj, effective_rev)
    for nid, rank in ranks.items():
        nodes[nid].rank = rank

    # --- Step 3: Virtual nodes for long edges ---
    expanded: list[tuple[Hashable, Hashable]] = []
    virtual_count = 0
    for src, tgt in oriented:
        prev: Hashable = src
        for r in range(ranks[src] + 1, ranks[tgt]):
            vkey = ("virtual", virtual_count)
            virtual_count += 1
            nodes[vkey] = _Node(key=vkey, width=1, height=1, rank=r, is_virtual=True)
            expanded.append((prev, vkey))
            prev = vkey
        expanded.append((prev, tgt))

    # --- Step 4: Crossing minimization ---
    by_rank: dict[int, list[Hashable]] = defaultdict(list)
    for key, node in nodes.items():
        by_rank[node.rank].append(key)
    exp_adj: dict[Hashable, list[Hashable]] = defaultdict(list)
    exp_rev: dict[Hashable, list[Hashable]] = defaultdict(list)
    for s, t in expanded:
        exp_adj[s].append(t)
        exp_rev[t].append(s)

    max_rank = max(by_rank)
    for rank_nodes in by_rank.values():
        for i, key in enumerate(rank_nodes):
            nodes[key].order = float(i)

    for _ in range(cfg.barycenter_iterations):
        for r in range(1, max_rank + 1):
            _barycenter_sort(by_rank[r], nodes, exp_rev)
        for r in range(max_rank - 1, -1, -1):
            _barycenter_sort(by_rank[r], nodes, exp_adj)

    # --- Step 5: Coordinates ---
    _assign_coordinates(by_rank, nodes, cfg)

    return [NodePosition(nid, nodes[nid].x, nodes[nid].y) for nid in all_ids]


def layered_layout_from_cache(
    cache: GeometryCache,
    links: Iterable[HasEndpoints],
    config: LayeredLayoutConfig | None = None,
) -> list[NodePosition]:
    sizes = {nid: (rect.width, rect.height) for nid, rect in cache.node_rects()}
    return layered_layout(sizes, node_edges(cache, links), config)


def _find_back_edges(
    all_nodes: list[Hashable],
    adj: dict[Hashable, list[Hashable]],
) -> set[tuple[Hashable, Hashable]]:
    """Find back-edges in a directed graph using iterative DFS."""
    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[Hashable, int] = {n: WHITE for n in all_nodes}
    back_edges: set[tuple[Hashable, Hashable]] = set()

    for start in all_nodes:
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        stack: list[tuple[Hashable, int]] = [(start, 0)]
        while stack:
            u, idx = stack[-1]
            neighbors = adj.get(u, [])
            if idx < len(neighbors):
                stack[-1] = (u, idx + 1)
                v = neighbors[idx]
                if color[v] == GRAY:
                    back_edges.add((u, v))
                elif color[v] == WHITE:
                    color[v] = GRAY
                    stack.append((v, 0))
            else:
                color[u] = BLACK
                stack.pop()

    return back_edges


def _assign_ranks_longest_path(
    all_nodes: list[Hashable],
    adj: dict[Hashable, list[Hashable]],
    rev_adj: dict[Hashable, list[Hashable]],
) -> dict[Hashable, int]:
    """Assign ranks using longest path from sources."""
    sources = [n for n in all_nodes if not rev_adj.get(n)]
    ranks: dict[Hashable, int] = {s: 0 for s in sources}
    queue = deque(sources)
    while queue:
        node = queue.popleft()
        for child in adj.get(node, []):
            new_rank = ranks[node] + 1
            if child not in ranks or ranks[child] < new_rank:
                ranks[child] = new_rank
                queue.append(child)

    for n in all_nodes:
        ranks.setdefault(n, 0)
    return ranks


def _barycenter_sort(
    rank_nodes: list[Hashable],
    nodes: dict[Hashable, _Node],
    neighbor_adj: dict[Hashable, list[Hashable]],
) -> None:
    """Sort nodes in a rank by barycenter of their neighbors."""
    barycenters: dict[Hashable, float] = {}
    for key in rank_nodes:
        orders = [nodes[n].order for n in neighbor_adj.get(key, [])]
        barycenters[key] = sum(orders) / len(orders) if orders else nodes[key].order

    rank_nodes.sort(key=lambda k: barycenters[k])
    for i, key in enumerate(rank_nodes):
        nodes[key].order = float(i)


def _assign_coordinates(
    by_rank: dict[int, list[Hashable]],
    nodes: dict[Hashable, _Node],
    cfg: LayeredLayoutConfig,
) -> None:
    """Assign x, y from rank and order; layers are centered on the widest."""
    horizontal = cfg.direction.upper() == "LR"

    def along(node: _Node) -> float:
        return node.height if horizontal else node.width

    def across(node: _Node) -> float:
        return node.width if horizontal else node.height

    extents: dict[int, float] = {}
    depth: dict[int, float] = {}
    for rank, keys in by_rank.items():
        real = [nodes[k] for k in keys if not nodes[k].is_virtual]
        extents[rank] = sum(along(n) for n in real) + max(len(real) - 1, 0) * cfg.node_spacing
        depth[rank] = max((across(n) for n in real), default=0)
    widest = max(extents.values())

    cursor = cfg.start_x if horizontal else cfg.start_y
    for rank in sorted(by_rank):
        pos = (widest - extents[rank]) / 2
        for key in by_rank[rank]:
            node = nodes[key]
            if horizontal:
                node.x, node.y = cursor, cfg.start_y + pos
            else:
                node.x, node.y = cfg.start_x + pos, cursor
            if not node.is_virtual:
                pos += along(node) + cfg.node_spacing
        cursor += depth[rank] + cfg.rank_spacing
