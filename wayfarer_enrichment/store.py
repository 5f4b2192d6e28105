"""
PostgreSQL entity store for the travel catalog.

Every method runs in its own transaction: commit on success, rollback and
re-raise on failure. Connectivity problems surface as StoreUnavailable,
integrity failures as ConstraintViolation. Composite writes (an itinerary
and its days, a destination's experiences) are a single transaction so a
partial logical unit is never committed.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor, execute_batch

from wayfarer_enrichment.completeness import experiences_complete
from wayfarer_enrichment.errors import ConstraintViolation, StoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_TTL_SECONDS = 900

# Columns enrichment is allowed to write; identity columns never appear here.
DESTINATION_TEXT_FIELDS = frozenset({
    "description", "immersive_description", "best_time_to_visit",
    "local_tips", "geography", "culture", "cuisine",
})
SNOWBIRD_TEXT_FIELDS = frozenset({
    "description", "visa_requirements", "healthcare_access",
    "avg_accommodation_cost", "flight_time", "language_barrier",
    "canadian_expats", "best_time_to_visit", "local_tips", "cost_of_living",
})

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS regions (
    id SERIAL PRIMARY KEY,
    name VARCHAR(100) NOT NULL UNIQUE,
    image VARCHAR(255),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS destinations (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    country TEXT NOT NULL,
    region_id INTEGER NOT NULL REFERENCES regions(id),
    description TEXT NOT NULL DEFAULT '',
    immersive_description TEXT,
    image_url TEXT NOT NULL DEFAULT '',
    featured BOOLEAN DEFAULT FALSE,
    download_count INTEGER DEFAULT 0,
    rating TEXT NOT NULL DEFAULT '0',
    best_time_to_visit TEXT,
    local_tips TEXT,
    geography TEXT,
    culture TEXT,
    cuisine TEXT,
    UNIQUE (name, country)
);

CREATE TABLE IF NOT EXISTS itineraries (
    id SERIAL PRIMARY KEY,
    destination_id INTEGER NOT NULL REFERENCES destinations(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    duration INTEGER NOT NULL,
    description TEXT NOT NULL,
    content TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_itineraries_destination ON itineraries (destination_id);

CREATE TABLE IF NOT EXISTS days (
    id SERIAL PRIMARY KEY,
    itinerary_id INTEGER NOT NULL REFERENCES itineraries(id) ON DELETE CASCADE,
    day_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    activities TEXT[]
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_days_itinerary_day ON days (itinerary_id, day_number);

CREATE TABLE IF NOT EXISTS enhanced_experiences (
    id SERIAL PRIMARY KEY,
    destination_id INTEGER NOT NULL REFERENCES destinations(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    theme TEXT,
    specific_location TEXT NOT NULL,
    description TEXT NOT NULL,
    personal_narrative TEXT,
    season TEXT,
    seasonal_event TEXT,
    best_time_to_visit TEXT,
    local_tip TEXT
);
ALTER TABLE enhanced_experiences ADD COLUMN IF NOT EXISTS theme TEXT;
CREATE UNIQUE INDEX IF NOT EXISTS uq_experiences_destination_title ON enhanced_experiences (destination_id, title);

CREATE TABLE IF NOT EXISTS collections (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL,
    image_url TEXT NOT NULL DEFAULT '',
    theme_color TEXT NOT NULL DEFAULT '#1f6feb',
    icon TEXT NOT NULL DEFAULT 'globe',
    featured BOOLEAN DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS collection_items (
    id SERIAL PRIMARY KEY,
    collection_id INTEGER NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    destination_id INTEGER NOT NULL REFERENCES destinations(id) ON DELETE CASCADE,
    position INTEGER DEFAULT 0,
    highlight TEXT,
    note TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_collection_items_member ON collection_items (collection_id, destination_id);

CREATE TABLE IF NOT EXISTS snowbird_destinations (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    country TEXT NOT NULL,
    region TEXT,
    image_url TEXT,
    avg_winter_temp TEXT,
    cost_comparison TEXT,
    description TEXT,
    visa_requirements TEXT,
    healthcare_access TEXT,
    avg_accommodation_cost TEXT,
    flight_time TEXT,
    language_barrier TEXT,
    canadian_expats TEXT,
    best_time_to_visit TEXT,
    local_tips TEXT,
    cost_of_living TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (name, country)
);

CREATE TABLE IF NOT EXISTS enrichment_claims (
    entity_type TEXT NOT NULL,
    entity_id INTEGER NOT NULL,
    run_id TEXT NOT NULL,
    claimed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (entity_type, entity_id)
);
"""

_NOT_CLAIMED = """
    NOT EXISTS (
        SELECT 1 FROM enrichment_claims c
        WHERE c.entity_type = %(entity_type)s
        AND c.entity_id = {alias}.id
        AND c.claimed_at > NOW() - make_interval(secs => %(claim_ttl)s)
    )
"""

_ITINERARY_CANDIDATE_SQL = """
    SELECT d.id, d.name, d.country, i.id AS itinerary_id, i.duration,
           COUNT(dy.id) AS day_count,
           MIN(dy.day_number) AS first_day,
           MAX(dy.day_number) AS last_day
    FROM destinations d
    LEFT JOIN itineraries i ON i.destination_id = d.id
    LEFT JOIN days dy ON dy.itinerary_id = i.id
"""

_EXPERIENCE_CANDIDATE_SQL = """
    SELECT d.id, d.name, d.country,
           COALESCE(
               json_agg(json_build_object('title', ee.title, 'theme', ee.theme)
                        ORDER BY ee.id) FILTER (WHERE ee.id IS NOT NULL),
               '[]'::json
           ) AS experiences
    FROM destinations d
    LEFT JOIN enhanced_experiences ee ON ee.destination_id = d.id
"""

_COLLECTION_ITEM_SQL = """
    SELECT ci.id, ci.collection_id, c.name AS collection_name,
           c.description AS collection_description,
           ci.destination_id, d.name, d.country, ci.highlight, ci.note
    FROM collection_items ci
    JOIN collections c ON c.id = ci.collection_id
    JOIN destinations d ON d.id = ci.destination_id
"""


def _short_text(column: str) -> str:
    """SQL twin of completeness.text_is_complete: blank or shorter than the threshold."""
    return f"COALESCE(LENGTH(BTRIM({column})), 0) < GREATEST(%(threshold)s, 1)"


class EntityStore:
    """
    Typed queries over the catalog tables.

    `database` is anything with a `get_connection()` context manager, in
    practice the DatabaseResource connection pool.
    """

    def __init__(self, database, claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS, page_size: int = 200):
        self.database = database
        self.claim_ttl_seconds = claim_ttl_seconds
        self.page_size = page_size

    @contextmanager
    def _cursor(self) -> Iterator[RealDictCursor]:
        try:
            with self.database.get_connection() as conn:
                cur = conn.cursor(cursor_factory=RealDictCursor)
                try:
                    yield cur
                    conn.commit()
                except psycopg2.IntegrityError as e:
                    conn.rollback()
                    raise ConstraintViolation(str(e).strip()) from e
                except (psycopg2.OperationalError, psycopg2.InterfaceError):
                    raise
                except Exception:
                    conn.rollback()
                    raise
                finally:
                    cur.close()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StoreUnavailable(f"entity store unreachable: {str(e).strip()}") from e

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def ping(self) -> None:
        with self._cursor() as cur:
            cur.execute("SELECT 1")

    def ensure_schema(self) -> None:
        """Create tables, unique indexes and the claim table if missing (idempotent)."""
        with self._cursor() as cur:
            cur.execute(SCHEMA_DDL)
        logger.info("Entity store schema is in place")

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, entity_type: str, entity_id: int, run_id: str) -> bool:
        """
        Claim an entity for this run. Returns False if another live run holds it.

        Claims older than the TTL are considered abandoned and taken over.
        """
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO enrichment_claims (entity_type, entity_id, run_id, claimed_at)
                VALUES (%(entity_type)s, %(entity_id)s, %(run_id)s, NOW())
                ON CONFLICT (entity_type, entity_id) DO UPDATE
                    SET run_id = EXCLUDED.run_id, claimed_at = EXCLUDED.claimed_at
                    WHERE enrichment_claims.claimed_at <= NOW() - make_interval(secs => %(claim_ttl)s)
                       OR enrichment_claims.run_id = EXCLUDED.run_id
                RETURNING run_id
                """,
                {
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "run_id": run_id,
                    "claim_ttl": self.claim_ttl_seconds,
                },
            )
            return cur.fetchone() is not None

    def release(self, entity_type: str, entity_id: int, run_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM enrichment_claims WHERE entity_type = %s AND entity_id = %s AND run_id = %s",
                (entity_type, entity_id, run_id),
            )

    # ------------------------------------------------------------------
    # Destinations
    # ------------------------------------------------------------------

    def select_destinations_missing_text(
        self, entity_type: str, field: str, threshold: int, limit: int
    ) -> List[Dict[str, Any]]:
        """Destinations whose `field` is blank or shorter than `threshold`, oldest first."""
        if field not in DESTINATION_TEXT_FIELDS:
            raise ValueError(f"{field} is not an enrichable destination field")
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT d.id, d.name, d.country, r.name AS region, d.{field} AS current_value
                FROM destinations d
                JOIN regions r ON r.id = d.region_id
                WHERE {_short_text('d.' + field)}
                AND {_NOT_CLAIMED.format(alias='d')}
                ORDER BY d.id
                LIMIT %(limit)s
                """,
                {
                    "threshold": threshold,
                    "limit": limit,
                    "entity_type": entity_type,
                    "claim_ttl": self.claim_ttl_seconds,
                },
            )
            return [dict(row) for row in cur.fetchall()]

    def fetch_destination_text(self, field: str, destination_id: int) -> Optional[Dict[str, Any]]:
        """One destination in the same shape as select_destinations_missing_text, read fresh."""
        if field not in DESTINATION_TEXT_FIELDS:
            raise ValueError(f"{field} is not an enrichable destination field")
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT d.id, d.name, d.country, r.name AS region, d.{field} AS current_value
                FROM destinations d
                JOIN regions r ON r.id = d.region_id
                WHERE d.id = %(id)s
                """,
                {"id": destination_id},
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def update_destination_fields(self, destination_id: int, fields: Dict[str, str]) -> None:
        unknown = set(fields) - DESTINATION_TEXT_FIELDS
        if unknown:
            raise ValueError(f"refusing to write non-narrative destination fields: {sorted(unknown)}")
        assignments = ", ".join(f"{name} = %({name})s" for name in sorted(fields))
        with self._cursor() as cur:
            cur.execute(
                f"UPDATE destinations SET {assignments} WHERE id = %(id)s",
                {**fields, "id": destination_id},
            )

    # ------------------------------------------------------------------
    # Itineraries
    # ------------------------------------------------------------------

    def select_itinerary_candidates(self, entity_type: str, limit: int) -> List[Dict[str, Any]]:
        """
        Destinations with no itinerary, or whose days aren't exactly 1..duration.

        Day numbers are unique per itinerary, so a matching count with first
        day 1 and last day `duration` means the set is dense.
        """
        with self._cursor() as cur:
            cur.execute(
                f"""
                {_ITINERARY_CANDIDATE_SQL}
                WHERE {_NOT_CLAIMED.format(alias='d')}
                GROUP BY d.id, d.name, d.country, i.id, i.duration
                HAVING i.id IS NULL
                    OR COALESCE(i.duration, 0) = 0
                    OR COUNT(dy.id) <> i.duration
                    OR MIN(dy.day_number) <> 1
                    OR MAX(dy.day_number) <> i.duration
                ORDER BY d.id
                LIMIT %(limit)s
                """,
                {"limit": limit, "entity_type": entity_type, "claim_ttl": self.claim_ttl_seconds},
            )
            return [dict(row) for row in cur.fetchall()]

    def fetch_itinerary_candidate(self, destination_id: int) -> Optional[Dict[str, Any]]:
        """Current itinerary state of one destination, complete or not."""
        with self._cursor() as cur:
            cur.execute(
                f"""
                {_ITINERARY_CANDIDATE_SQL}
                WHERE d.id = %(id)s
                GROUP BY d.id, d.name, d.country, i.id, i.duration
                """,
                {"id": destination_id},
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def replace_itinerary(self, destination_id: int, itinerary: Dict[str, Any], days: Sequence[Dict[str, Any]]) -> int:
        """
        Write an itinerary and its full day set as one logical unit.

        Any existing (possibly partial) day rows are deleted first, so a
        repaired itinerary never ends up with old and new days mixed.
        """
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO itineraries (destination_id, title, duration, description, content)
                VALUES (%(destination_id)s, %(title)s, %(duration)s, %(description)s, %(content)s)
                ON CONFLICT (destination_id) DO UPDATE SET
                    title = EXCLUDED.title,
                    duration = EXCLUDED.duration,
                    description = EXCLUDED.description,
                    content = EXCLUDED.content
                RETURNING id
                """,
                {**itinerary, "destination_id": destination_id},
            )
            itinerary_id = cur.fetchone()["id"]
            cur.execute("DELETE FROM days WHERE itinerary_id = %s", (itinerary_id,))
            execute_batch(
                cur,
                """
                INSERT INTO days (itinerary_id, day_number, title, activities)
                VALUES (%(itinerary_id)s, %(day_number)s, %(title)s, %(activities)s)
                """,
                [{**day, "itinerary_id": itinerary_id} for day in days],
                page_size=100,
            )
        return itinerary_id

    # ------------------------------------------------------------------
    # Enhanced experiences
    # ------------------------------------------------------------------

    def select_experience_candidates(self, entity_type: str, limit: int) -> List[Dict[str, Any]]:
        """
        Destinations with fewer than 3 experiences or a theme not yet covered.

        Theme coverage needs keyword matching, so candidates are paged in
        destination order and filtered with the completeness predicate.
        """
        selected: List[Dict[str, Any]] = []
        offset = 0
        with self._cursor() as cur:
            while len(selected) < limit:
                cur.execute(
                    f"""
                    {_EXPERIENCE_CANDIDATE_SQL}
                    WHERE {_NOT_CLAIMED.format(alias='d')}
                    GROUP BY d.id, d.name, d.country
                    ORDER BY d.id
                    LIMIT %(page_size)s OFFSET %(offset)s
                    """,
                    {
                        "page_size": self.page_size,
                        "offset": offset,
                        "entity_type": entity_type,
                        "claim_ttl": self.claim_ttl_seconds,
                    },
                )
                rows = cur.fetchall()
                if not rows:
                    break
                for row in rows:
                    if not experiences_complete(row["experiences"]):
                        selected.append(dict(row))
                        if len(selected) >= limit:
                            break
                offset += self.page_size
        return selected

    def fetch_experience_candidate(self, destination_id: int) -> Optional[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                {_EXPERIENCE_CANDIDATE_SQL}
                WHERE d.id = %(id)s
                GROUP BY d.id, d.name, d.country
                """,
                {"id": destination_id},
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def add_experiences(self, destination_id: int, experiences: Sequence[Dict[str, Any]]) -> int:
        """Insert a destination's new experiences in one transaction; same-title rows are skipped."""
        inserted = 0
        with self._cursor() as cur:
            for experience in experiences:
                cur.execute(
                    """
                    INSERT INTO enhanced_experiences (
                        destination_id, title, theme, specific_location, description,
                        personal_narrative, season, seasonal_event, best_time_to_visit, local_tip
                    ) VALUES (
                        %(destination_id)s, %(title)s, %(theme)s, %(specific_location)s, %(description)s,
                        %(personal_narrative)s, %(season)s, %(seasonal_event)s, %(best_time_to_visit)s, %(local_tip)s
                    )
                    ON CONFLICT (destination_id, title) DO NOTHING
                    """,
                    {**experience, "destination_id": destination_id},
                )
                inserted += cur.rowcount
        return inserted

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def select_collection_items_for_annotation(self, entity_type: str, limit: int) -> List[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                {_COLLECTION_ITEM_SQL}
                WHERE (COALESCE(BTRIM(ci.highlight), '') = '' OR COALESCE(BTRIM(ci.note), '') = '')
                AND {_NOT_CLAIMED.format(alias='ci')}
                ORDER BY ci.collection_id, ci.position, ci.id
                LIMIT %(limit)s
                """,
                {"limit": limit, "entity_type": entity_type, "claim_ttl": self.claim_ttl_seconds},
            )
            return [dict(row) for row in cur.fetchall()]

    def fetch_collection_item(self, item_id: int) -> Optional[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(f"{_COLLECTION_ITEM_SQL} WHERE ci.id = %(id)s", {"id": item_id})
            row = cur.fetchone()
            return dict(row) if row else None

    def update_collection_item(self, item_id: int, highlight: str, note: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "UPDATE collection_items SET highlight = %s, note = %s WHERE id = %s",
                (highlight, note, item_id),
            )

    # ------------------------------------------------------------------
    # Snowbird destinations
    # ------------------------------------------------------------------

    def select_snowbird_candidates(self, entity_type: str, threshold: int, limit: int) -> List[Dict[str, Any]]:
        """Snowbird guides with any blank narrative field or a short description."""
        blank_any = " OR ".join(
            f"COALESCE(BTRIM(s.{name}), '') = ''" for name in sorted(SNOWBIRD_TEXT_FIELDS)
        )
        columns = ", ".join(f"s.{name}" for name in sorted(SNOWBIRD_TEXT_FIELDS))
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT s.id, s.name, s.country, s.region, {columns}
                FROM snowbird_destinations s
                WHERE ({blank_any} OR {_short_text('s.description')})
                AND {_NOT_CLAIMED.format(alias='s')}
                ORDER BY s.id
                LIMIT %(limit)s
                """,
                {
                    "threshold": threshold,
                    "limit": limit,
                    "entity_type": entity_type,
                    "claim_ttl": self.claim_ttl_seconds,
                },
            )
            return [dict(row) for row in cur.fetchall()]

    def fetch_snowbird(self, snowbird_id: int) -> Optional[Dict[str, Any]]:
        columns = ", ".join(f"s.{name}" for name in sorted(SNOWBIRD_TEXT_FIELDS))
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT s.id, s.name, s.country, s.region, {columns}
                FROM snowbird_destinations s
                WHERE s.id = %(id)s
                """,
                {"id": snowbird_id},
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def update_snowbird_fields(self, snowbird_id: int, fields: Dict[str, str]) -> None:
        unknown = set(fields) - SNOWBIRD_TEXT_FIELDS
        if unknown:
            raise ValueError(f"refusing to write non-narrative snowbird fields: {sorted(unknown)}")
        assignments = ", ".join(f"{name} = %({name})s" for name in sorted(fields))
        with self._cursor() as cur:
            cur.execute(
                f"UPDATE snowbird_destinations SET {assignments} WHERE id = %(id)s",
                {**fields, "id": snowbird_id},
            )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def upsert_regions(self, regions: Sequence[Dict[str, Any]]) -> Dict[str, int]:
        region_map: Dict[str, int] = {}
        with self._cursor() as cur:
            for region in regions:
                cur.execute(
                    """
                    INSERT INTO regions (name, image)
                    VALUES (%(name)s, %(image)s)
                    ON CONFLICT (name) DO UPDATE SET image = COALESCE(EXCLUDED.image, regions.image)
                    RETURNING id, name
                    """,
                    {"name": region["name"], "image": region.get("image")},
                )
                row = cur.fetchone()
                region_map[row["name"]] = row["id"]
        return region_map

    def upsert_destinations(self, destinations: Sequence[Dict[str, Any]]) -> Dict[str, int]:
        """
        Insert or refresh reference columns of destinations.

        Narrative columns are left alone on conflict so re-seeding never
        wipes enriched text.
        """
        destination_map: Dict[str, int] = {}
        with self._cursor() as cur:
            for dest in destinations:
                cur.execute(
                    """
                    INSERT INTO destinations (name, country, region_id, description, image_url, featured, rating)
                    VALUES (%(name)s, %(country)s, %(region_id)s, COALESCE(%(description)s, ''),
                            COALESCE(%(image_url)s, ''), %(featured)s, %(rating)s)
                    ON CONFLICT (name, country) DO UPDATE SET
                        region_id = EXCLUDED.region_id,
                        image_url = EXCLUDED.image_url,
                        featured = EXCLUDED.featured,
                        rating = EXCLUDED.rating
                    RETURNING id, name, country
                    """,
                    dest,
                )
                row = cur.fetchone()
                destination_map[f"{row['name']}|{row['country']}"] = row["id"]
        return destination_map

    def upsert_snowbird_destinations(self, rows: Sequence[Dict[str, Any]]) -> int:
        with self._cursor() as cur:
            execute_batch(
                cur,
                """
                INSERT INTO snowbird_destinations (name, country, region, image_url, avg_winter_temp, cost_comparison)
                VALUES (%(name)s, %(country)s, %(region)s, %(image_url)s, %(avg_winter_temp)s, %(cost_comparison)s)
                ON CONFLICT (name, country) DO UPDATE SET
                    region = EXCLUDED.region,
                    image_url = EXCLUDED.image_url,
                    avg_winter_temp = EXCLUDED.avg_winter_temp,
                    cost_comparison = EXCLUDED.cost_comparison
                """,
                rows,
                page_size=500,
            )
        return len(rows)

    def upsert_collection(self, collection: Dict[str, Any], members: Sequence[Dict[str, str]]) -> Dict[str, int]:
        """Upsert a collection and attach its member destinations (looked up by name and country)."""
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO collections (name, slug, description, image_url, theme_color, icon, featured)
                VALUES (%(name)s, %(slug)s, %(description)s, %(image_url)s, %(theme_color)s, %(icon)s, %(featured)s)
                ON CONFLICT (slug) DO UPDATE SET
                    name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    image_url = EXCLUDED.image_url,
                    theme_color = EXCLUDED.theme_color,
                    icon = EXCLUDED.icon,
                    featured = EXCLUDED.featured
                RETURNING id
                """,
                collection,
            )
            collection_id = cur.fetchone()["id"]
            attached = 0
            missing = 0
            for position, member in enumerate(members):
                cur.execute(
                    "SELECT id FROM destinations WHERE name = %s AND country = %s",
                    (member["name"], member["country"]),
                )
                row = cur.fetchone()
                if row is None:
                    missing += 1
                    logger.warning(f"Collection {collection['slug']}: no destination {member['name']}, {member['country']}")
                    continue
                cur.execute(
                    """
                    INSERT INTO collection_items (collection_id, destination_id, position)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (collection_id, destination_id) DO UPDATE SET position = EXCLUDED.position
                    """,
                    (collection_id, row["id"], position),
                )
                attached += 1
        return {"collection_id": collection_id, "attached": attached, "missing": missing}

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def table_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute("""
                SELECT
                    (SELECT COUNT(*) FROM regions) AS regions,
                    (SELECT COUNT(*) FROM destinations) AS destinations,
                    (SELECT COUNT(*) FROM destinations WHERE LENGTH(BTRIM(description)) >= 150) AS described,
                    (SELECT COUNT(*) FROM destinations
                        WHERE COALESCE(BTRIM(immersive_description), '') <> '') AS immersive,
                    (SELECT COUNT(*) FROM itineraries) AS itineraries,
                    (SELECT COUNT(*) FROM days) AS days,
                    (SELECT COUNT(*) FROM enhanced_experiences) AS experiences,
                    (SELECT COUNT(DISTINCT destination_id) FROM enhanced_experiences) AS destinations_with_experiences,
                    (SELECT COUNT(*) FROM collections) AS collections,
                    (SELECT COUNT(*) FROM collection_items) AS collection_items,
                    (SELECT COUNT(*) FROM collection_items
                        WHERE COALESCE(BTRIM(highlight), '') <> '' AND COALESCE(BTRIM(note), '') <> '') AS annotated_items,
                    (SELECT COUNT(*) FROM snowbird_destinations) AS snowbird_destinations,
                    (SELECT COUNT(*) FROM enrichment_claims) AS open_claims
            """)
            row = cur.fetchone()
        return {
            "destinations": {
                "total": row["destinations"],
                "regions": row["regions"],
                "described": row["described"],
                "immersive": row["immersive"],
            },
            "itineraries": {"total": row["itineraries"], "days": row["days"]},
            "enhanced_experiences": {
                "total": row["experiences"],
                "destinations_covered": row["destinations_with_experiences"],
            },
            "collections": {
                "total": row["collections"],
                "items": row["collection_items"],
                "annotated_items": row["annotated_items"],
            },
            "snowbird_destinations": {"total": row["snowbird_destinations"]},
            "claims": {"open": row["open_claims"]},
        }

    def quality_summary(self, description_threshold: int) -> Dict[str, int]:
        """Counts of rows violating the pipeline's consistency targets."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM itineraries i
                        WHERE (SELECT COUNT(*) FROM days d WHERE d.itinerary_id = i.id) <> i.duration
                    ) AS itineraries_with_day_mismatch,
                    (SELECT COUNT(*) FROM itineraries i
                        WHERE EXISTS (
                            SELECT 1 FROM days d WHERE d.itinerary_id = i.id
                            AND (d.day_number < 1 OR d.day_number > i.duration)
                        )
                    ) AS itineraries_with_out_of_range_days,
                    (SELECT COUNT(*) FROM destinations d
                        WHERE (SELECT COUNT(*) FROM enhanced_experiences e WHERE e.destination_id = d.id) < 3
                    ) AS destinations_below_experience_target,
                    (SELECT COUNT(*) FROM destinations
                        WHERE COALESCE(LENGTH(BTRIM(description)), 0) < %(threshold)s
                    ) AS short_descriptions,
                    (SELECT COUNT(*) FROM collection_items
                        WHERE COALESCE(BTRIM(highlight), '') = '' OR COALESCE(BTRIM(note), '') = ''
                    ) AS unannotated_collection_items,
                    (SELECT COUNT(*) FROM enrichment_claims
                        WHERE claimed_at <= NOW() - make_interval(secs => %(claim_ttl)s)
                    ) AS stale_claims,
                    (SELECT COUNT(*) FROM destinations) AS destinations
                """,
                {"threshold": description_threshold, "claim_ttl": self.claim_ttl_seconds},
            )
            return dict(cur.fetchone())
