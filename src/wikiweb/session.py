"""Explorer workflows: add topics, expand, delete, prune, find paths, undo.

The session ties a GraphModel to a ContentFetcher. Fetch results pass
through the UpdateBatcher and are dropped when an undo or redo happened
while they were in flight. Failures end up as a message in ``error``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, TypeVar

from wikiweb.batching import UpdateBatcher
from wikiweb.config import settings
from wikiweb.fetch.base import ContentFetcher, LinkInfo
from wikiweb.graph.model import GraphModel
from wikiweb.graph.models import Link, LinkType, Node
from wikiweb.history import HistoryManager, MutationEpoch
from wikiweb.search import PathSearchEngine, PathSearchResult, SearchOutcome, SearchProgress

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ExpandCandidate:
    """A topic considered for an expansion, with the signals it is scored on."""

    title: str
    direction: str  # "out" or "in"
    context: str | None = None
    is_bold: bool = False
    is_bidirectional: bool = False
    shared_categories: int = 0


def score_candidate(candidate: ExpandCandidate, in_graph: bool, degree: int) -> int:
    """Rank expansion candidates: connected, reciprocal and bold links first."""
    return (
        degree * 10
        + (20 if in_graph else 10)
        + (15 if candidate.direction == "in" else 0)
        + (35 if candidate.is_bidirectional else 0)
        + (12 if candidate.is_bold else 0)
        + candidate.shared_categories * 15
    )


async def _best_effort(awaitable: Awaitable[T], default: T) -> T:
    try:
        return await awaitable
    except Exception as e:
        logger.warning(f"Optional fetch failed: {e}")
        return default


class ExplorerSession:
    """
    One exploration session over a topic graph.

    Tracks which topics the user typed, which were discovered, expanded or
    lie on a found path. These sets travel with undo/redo snapshots.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        model: GraphModel | None = None,
        batcher: UpdateBatcher | None = None,
        epoch: MutationEpoch | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.model = model or GraphModel()
        self.epoch = epoch or MutationEpoch()
        self.batcher = batcher or UpdateBatcher(self.model)
        self.search_engine = PathSearchEngine(self.model, fetcher, epoch=self.epoch)
        self.history = HistoryManager(
            self.model,
            batcher=self.batcher,
            search_engine=self.search_engine,
            epoch=self.epoch,
            capture_aux=self._capture_aux,
            on_restore=self._restore_aux,
        )

        self.error = ""
        self.loading = False
        self.user_typed: set[str] = set()
        self.auto_discovered: set[str] = set()
        self.expanded: set[str] = set()
        self.path_nodes: set[str] = set()
        self.thumbnails: dict[str, str] = {}
        self.descriptions: dict[str, str] = {}
        self.categories: dict[str, list[str]] = {}
        self.backlink_counts: dict[str, int] = {}
        self.bulk_selection: list[str] = []
        self.search_log: list[str] = []
        self.search_progress: SearchProgress | None = None
        self._exploring: str | None = None

        if self.model.callbacks.on_selection_change is None:
            self.model.callbacks.on_selection_change = self.set_bulk_selection

    # ------------------------------------------------------------------
    # Adding topics

    async def add_topic(self, title: str, include_backlinks: bool = False) -> str | None:
        """
        Add a topic with its outgoing links (and optionally backlinks).

        Returns the resolved title, or None when fetching failed. Raises
        ValueError for empty input.
        """
        if not title or not title.strip():
            self.error = "Please enter a topic"
            raise ValueError(self.error)

        self.error = ""
        self.loading = True
        epoch = self.epoch.current
        try:
            resolved = await self.fetcher.resolve_title(title)
            links, summary, categories, backlinks = await asyncio.gather(
                self.fetcher.fetch_links(resolved),
                self.fetcher.fetch_summary(resolved),
                _best_effort(self.fetcher.fetch_categories(resolved), []),
                self.fetcher.fetch_backlinks(resolved, settings.topic_backlink_limit)
                if include_backlinks else _no_backlinks(),
            )
        except Exception as e:
            logger.error(f'Add topic "{title}" failed: {e}')
            self.error = str(e) or "Failed to fetch Wikipedia data"
            return None
        finally:
            self.loading = False

        if not self.epoch.is_current(epoch):
            logger.info(f'Graph changed while fetching "{resolved}"; discarding')
            return resolved
        self.history.push_history()

        root_meta: dict[str, Any] = {"is_user_typed": True}
        if summary.thumbnail:
            self.thumbnails[resolved] = summary.thumbnail
            root_meta["thumbnail"] = summary.thumbnail
        if summary.description:
            self.descriptions[resolved] = summary.description
            root_meta["color_seed"] = summary.description
        if categories:
            self.categories[resolved] = categories
        if include_backlinks:
            self.backlink_counts[resolved] = len(backlinks)
        self.user_typed.add(resolved)

        nodes = [Node(
            id=resolved,
            metadata={"origin_seed": resolved, "origin_depth": 0, "color_role": "root"},
        )]
        new_links: list[Link] = []
        discovered: list[str] = []
        child_meta = {"origin_seed": resolved, "origin_depth": 1, "color_role": "child"}

        for link in links:
            nodes.append(Node(id=link.title, metadata=dict(child_meta)))
            discovered.append(link.title)
            new_links.append(Link(resolved, link.title, type=LinkType.MANUAL, context=link.context))

        for backlink in backlinks:
            if not backlink or backlink == resolved:
                continue
            nodes.append(Node(id=backlink, metadata=dict(child_meta)))
            discovered.append(backlink)
            new_links.append(Link(backlink, resolved, type=LinkType.BACKLINK))

        new_links.extend(self._auto_links(resolved, self.fetcher.get_cached_titles()))

        if not self.epoch.is_current(epoch):
            return resolved
        self.auto_discovered.update(discovered)
        self.model.set_nodes_metadata(
            [(resolved, root_meta)] + [(t, {"is_auto_discovered": True}) for t in discovered]
        )
        self.batcher.queue_update(nodes, new_links)
        logger.info(f'Added topic "{resolved}" with {len(discovered)} connections')
        return resolved

    def _auto_links(self, target: str, sources: Iterable[str], skip: str | None = None) -> list[Link]:
        """``auto`` links from graph topics whose cached links mention ``target``."""
        found = []
        for source in sources:
            if source in (target, skip) or not self.model.has_node(source):
                continue
            match = _find_link(self.fetcher.get_links_from_cache(source), target)
            if match is not None:
                found.append(Link(source, target, type=LinkType.AUTO, context=match.context))
        return found

    # ------------------------------------------------------------------
    # Expansion

    async def expand_node(self, title: str, include_backlinks: bool = False) -> list[str]:
        """
        Expand a node with its best-scoring neighbors, or collapse the
        expanded flag when it is already expanded.

        Returns the titles queued for addition.
        """
        if not self.model.has_node(title):
            raise ValueError(f"Unknown node: {title}")

        if title in self.expanded:
            self.expanded.discard(title)
            self.model.set_node_metadata(title, {"is_expanded": False})
            return []

        self.loading = True
        epoch = self.epoch.current
        try:
            links, backlinks, categories = await asyncio.gather(
                self.fetcher.fetch_links(title),
                self.fetcher.fetch_backlinks(title, settings.expand_backlink_limit)
                if include_backlinks else _no_backlinks(),
                _best_effort(self.fetcher.fetch_categories(title), []),
            )
        except Exception as e:
            logger.error(f'Expand "{title}" failed: {e}')
            self.error = f"Failed to expand {title}"
            return []
        finally:
            self.loading = False

        if not self.epoch.is_current(epoch):
            return []
        self.history.push_history()

        origin = self.model.get_node_metadata(title)
        origin_seed = (origin.origin_seed if origin else None) or title
        origin_depth = (origin.origin_depth if origin and origin.origin_depth is not None else 0) + 1
        existing = self.model.get_node_ids()

        if categories:
            self.categories[title] = categories
        if include_backlinks:
            self.backlink_counts[title] = len(backlinks)

        candidates = self._candidates(title, links, backlinks, categories or self.categories.get(title, []))

        def score(c: ExpandCandidate) -> int:
            in_graph = self.model.has_node(c.title)
            degree = self.model.get_node_degree(c.title) if in_graph else 0
            return score_candidate(c, in_graph, degree)

        chosen = sorted(candidates, key=score, reverse=True)[: settings.expand_max_candidates]
        if not chosen:
            self.error = "No relevant connections found."
            return []

        nodes: list[Node] = []
        new_links: list[Link] = []
        for c in chosen:
            nodes.append(Node(
                id=c.title,
                metadata={"origin_seed": origin_seed, "origin_depth": origin_depth, "color_role": "child"},
            ))
            if c.direction == "out":
                link_type = LinkType.EXPAND_BACKLINK if c.is_bidirectional else LinkType.EXPAND
                new_links.append(Link(title, c.title, type=link_type, context=c.context))
            else:
                new_links.append(Link(c.title, title, type=LinkType.EXPAND_BACKLINK))
            new_links.extend(self._auto_links(c.title, existing, skip=title))

        if not self.epoch.is_current(epoch):
            return []
        titles = [c.title for c in chosen]
        self.auto_discovered.update(titles)
        self.expanded.add(title)
        self.model.set_nodes_metadata(
            [(title, {"is_expanded": True})] + [(t, {"is_auto_discovered": True}) for t in titles]
        )
        self.batcher.queue_update(nodes, new_links)
        logger.info(f'Expanded "{title}" with {len(titles)} topics')
        return titles

    def _candidates(
        self,
        title: str,
        links: list[LinkInfo],
        backlinks: list[str],
        source_categories: list[str],
    ) -> list[ExpandCandidate]:
        bold = set(self.fetcher.get_bold_link_titles_from_cache(title) or [])
        incoming = set(backlinks)
        outgoing = {link.title for link in links}
        source_cats = set(source_categories)

        def shared(candidate: str) -> int:
            return len(source_cats.intersection(self.categories.get(candidate, ())))

        candidates = [
            ExpandCandidate(
                title=link.title,
                direction="out",
                context=link.context,
                is_bold=link.title in bold,
                is_bidirectional=link.title in incoming,
                shared_categories=shared(link.title),
            )
            for link in links
            if link.title and link.title != title
        ]
        # Reciprocal links are already represented by the outgoing candidate
        candidates.extend(
            ExpandCandidate(title=b, direction="in", shared_categories=shared(b))
            for b in backlinks
            if b and b != title and b not in outgoing
        )
        return candidates

    # ------------------------------------------------------------------
    # Removal

    def delete_node(self, node_id: str) -> bool:
        self.history.push_history()
        removed = self.model.delete_node(node_id)
        self._forget([node_id])
        return removed

    def set_bulk_selection(self, nodes: Iterable[Node | str]) -> None:
        """Replace the box selection and flag the selected nodes."""
        ids = [n if isinstance(n, str) else n.id for n in nodes]
        previous = set(self.bulk_selection) - set(ids)
        self.bulk_selection = ids
        self.model.set_nodes_metadata(
            [(nid, {"is_bulk_selected": False}) for nid in previous if self.model.has_node(nid)]
            + [(nid, {"is_bulk_selected": True}) for nid in ids if self.model.has_node(nid)]
        )

    def delete_selection(self) -> int:
        """Delete every box-selected node at once."""
        ids = list(self.bulk_selection)
        if not ids:
            self.error = "No bulk selection to delete (Alt+Drag)."
            return 0
        self.history.push_history()
        removed = self.model.delete_nodes(ids)
        self.bulk_selection = []
        self._forget(ids)
        self.error = f"Deleted {len(ids)} selected nodes."
        return removed

    def prune_leaf_nodes(self) -> int:
        self.history.push_history()
        removed = self.model.prune_nodes()
        if removed:
            self.error = f"Pruned {removed} leaf nodes (degree < 2)."
            self._forget([nid for nid in self._tracked() if not self.model.has_node(nid)])
        else:
            self.error = "No leaf nodes found to prune."
        return removed

    def _tracked(self) -> set[str]:
        return self.user_typed | self.auto_discovered | self.expanded | self.path_nodes

    def _forget(self, ids: Iterable[str]) -> None:
        for nid in ids:
            self.user_typed.discard(nid)
            self.auto_discovered.discard(nid)
            self.expanded.discard(nid)
            self.path_nodes.discard(nid)

    # ------------------------------------------------------------------
    # Path search

    async def find_path(self, start: str, end: str, keep_searching: bool = False) -> PathSearchResult:
        """Search a link path between two topics and add it to the graph."""
        self.error = ""
        self.search_log = []
        self.loading = True
        epoch = self.epoch.current
        endpoints = [t for t in (start, end) if self.model.has_node(t)]
        self.model.set_nodes_metadata((t, {"is_path_endpoint": True}) for t in endpoints)

        def on_path_found(path: list[str]) -> None:
            self.path_nodes.update(path)

        try:
            result = await self.search_engine.search(
                start, end,
                keep_searching=keep_searching,
                on_path_found=on_path_found,
                on_progress=self._on_search_progress,
                on_log=self.search_log.append,
            )
        finally:
            self.loading = False

        if self.epoch.is_current(epoch):
            self._set_exploring(None)
            self.model.set_nodes_metadata(
                (t, {"is_path_endpoint": False}) for t in endpoints if self.model.has_node(t)
            )

        if result.outcome == SearchOutcome.ABORTED:
            self.error = "Search cancelled"
        elif result.error:
            self.error = result.error
        return result

    def _on_search_progress(self, progress: SearchProgress) -> None:
        self.search_progress = progress
        self._set_exploring(progress.current_title)

    def _set_exploring(self, title: str | None) -> None:
        updates = []
        if self._exploring and self.model.has_node(self._exploring):
            updates.append((self._exploring, {"is_currently_exploring": False}))
        if title and self.model.has_node(title):
            updates.append((title, {"is_currently_exploring": True}))
        self._exploring = title
        if updates:
            self.model.set_nodes_metadata(updates)

    def pause_search(self) -> None:
        self.search_engine.pause()

    def resume_search(self) -> None:
        self.search_engine.resume()

    def abort_search(self) -> None:
        self.search_engine.abort()

    # ------------------------------------------------------------------
    # History

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    def _capture_aux(self) -> dict[str, Any]:
        return {
            "user_typed": set(self.user_typed),
            "auto_discovered": set(self.auto_discovered),
            "expanded": set(self.expanded),
            "path_nodes": set(self.path_nodes),
            "thumbnails": dict(self.thumbnails),
        }

    def _restore_aux(self, aux: dict[str, Any]) -> None:
        self.user_typed = set(aux.get("user_typed", ()))
        self.auto_discovered = set(aux.get("auto_discovered", ()))
        self.expanded = set(aux.get("expanded", ()))
        self.path_nodes = set(aux.get("path_nodes", ()))
        self.thumbnails = dict(aux.get("thumbnails", {}))
        self.bulk_selection = []
        self._exploring = None
        self.loading = False

    async def close(self) -> None:
        self.search_engine.abort()
        self.batcher.close()


async def _no_backlinks() -> list[str]:
    return []


def _find_link(links: list[LinkInfo] | None, title: str) -> LinkInfo | None:
    for link in links or []:
        if link.title == title:
            return link
    return None
