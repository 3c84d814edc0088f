"""Pre-warming of the query embedding cache.

Embedding the most popular queries at startup makes the first user searches
for those terms skip the model entirely.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .query_embedder import QueryEmbedder

logger = logging.getLogger(__name__)

PREWARM_BATCH_SIZE = 5

# Popular queries ordered by estimated search frequency
PREWARM_QUERIES: tuple[str, ...] = (
    # Nightfarer classes
    "Wylder",
    "Wylder skill",
    "Wylder grapple",
    "Wylder ultimate",
    "Executor",
    "Executor bleed build",
    "Duchess",
    "Duchess stealth",
    "Ironeye",
    "Ironeye ranged",
    "Guardian",
    "Raider",
    "Recluse",
    "Revenant",
    "Scholar",
    "Undertaker",
    # Class comparisons
    "best class",
    "best nightfarer",
    "tier list",
    "strongest class",
    "beginner class",
    "easiest class",
    "best solo class",
    "best co-op class",
    # Bosses
    "Gladius Beast of Night",
    "Adel Baron of Night",
    "Heolstor",
    "Night Lord",
    "final boss",
    "boss weaknesses",
    "boss strategy",
    "how to beat",
    # Legendary weapons
    "Blasphemous Blade",
    "Hand of Malenia",
    "Marais Executioner Sword",
    "Carian Regal Scepter",
    "Bolt of Gransax",
    "best weapon",
    "legendary weapon",
    "weapon scaling",
    # Builds
    "bleed build",
    "best build",
    "strength build",
    "dexterity build",
    "intelligence build",
    "faith build",
    "arcane build",
    # Progression
    "relics",
    "best relics",
    "vessels",
    "relic farming",
    "expedition",
    "difficulty",
    # Beginner questions
    "how to",
    "what is",
    "where to find",
    "beginner guide",
    "tips",
    # Items
    "talisman",
    "spell",
    "skill",
    "armor",
    "shield",
)


@dataclass
class PrewarmResult:
    success: int
    failed: int
    duration_ms: float

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "failed": self.failed,
            "durationMs": round(self.duration_ms, 2),
        }


def prewarm_embedding_cache(
    embedder: QueryEmbedder,
    queries: tuple[str, ...] | list[str] = PREWARM_QUERIES,
    batch_size: int = PREWARM_BATCH_SIZE,
) -> PrewarmResult:
    """Embed popular queries so they are served from the cache.

    Queries are embedded in batches; each batch runs concurrently. A failing
    query is counted and logged but does not stop the run.

    Args:
        embedder: The cached query embedder to warm.
        queries: Queries to embed.
        batch_size: Number of queries embedded concurrently.

    Returns:
        PrewarmResult with success/failure counts and duration.
    """
    start = time.perf_counter()
    success = 0
    failed = 0

    with ThreadPoolExecutor(max_workers=max(batch_size, 1), thread_name_prefix="prewarm") as pool:
        for i in range(0, len(queries), batch_size):
            batch = queries[i : i + batch_size]
            futures = [pool.submit(embedder.embed, query) for query in batch]
            for query, future in zip(batch, futures):
                try:
                    future.result()
                    success += 1
                except Exception as e:
                    failed += 1
                    logger.warning(f"Pre-warm failed for query '{query}': {e}")

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Pre-warmed {success}/{len(queries)} queries in {duration_ms:.0f}ms")

    return PrewarmResult(success=success, failed=failed, duration_ms=duration_ms)
