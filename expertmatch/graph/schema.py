"""
Graph schema for the expert graph.

Vertices: Expert, Project, Customer, Technology.
Edges:
    (Expert)-[:WORKED_ON {role}]->(Project)
    (Project)-[:USES_TECHNOLOGY]->(Technology)
    (Project)-[:FOR_CUSTOMER]->(Customer)

The graph is built outside the engine; this module only names the schema and
holds the read queries issued against it. Name comparisons are
case-insensitive: parameters are lower-cased by the caller and compared with
``toLower(...)``.
"""

from __future__ import annotations

# =============================================================================
# Node Label Definitions
# =============================================================================


class NodeLabels:
    """Node label constants for the expert graph."""

    EXPERT = "Expert"
    PROJECT = "Project"
    CUSTOMER = "Customer"
    TECHNOLOGY = "Technology"


# =============================================================================
# Relationship Type Definitions
# =============================================================================


class RelationshipTypes:
    """Relationship type constants for the expert graph."""

    WORKED_ON = "WORKED_ON"
    USES_TECHNOLOGY = "USES_TECHNOLOGY"
    FOR_CUSTOMER = "FOR_CUSTOMER"


# =============================================================================
# Search Queries
# =============================================================================

# Experts covering more of the requested technologies rank first
EXPERTS_BY_TECHNOLOGIES = """
MATCH (e:Expert)-[:WORKED_ON]->(:Project)-[:USES_TECHNOLOGY]->(t:Technology)
WHERE toLower(t.name) IN $technologies
WITH e, count(DISTINCT toLower(t.name)) AS matched
RETURN e.id AS expert_id, matched
ORDER BY matched DESC, expert_id
LIMIT $limit
"""

EXPERTS_BY_CUSTOMERS = """
MATCH (e:Expert)-[:WORKED_ON]->(p:Project)-[:FOR_CUSTOMER]->(c:Customer)
WHERE toLower(c.name) IN $customers
WITH e, count(DISTINCT p) AS projects
RETURN e.id AS expert_id, projects
ORDER BY projects DESC, expert_id
LIMIT $limit
"""

EXPERTS_BY_CUSTOMER_AND_TECHNOLOGIES = """
MATCH (e:Expert)-[:WORKED_ON]->(p:Project)-[:FOR_CUSTOMER]->(c:Customer)
WHERE toLower(c.name) IN $customers
MATCH (p)-[:USES_TECHNOLOGY]->(t:Technology)
WHERE toLower(t.name) IN $technologies
WITH e, count(DISTINCT toLower(t.name)) AS matched
RETURN e.id AS expert_id, matched
ORDER BY matched DESC, expert_id
LIMIT $limit
"""

EXPERTS_BY_PROJECT_TYPES = """
MATCH (e:Expert)-[:WORKED_ON]->(p:Project)
WHERE toLower(p.project_type) IN $project_types
WITH e, count(DISTINCT p) AS projects
RETURN e.id AS expert_id, projects
ORDER BY projects DESC, expert_id
LIMIT $limit
"""

EXPERTS_BY_DOMAINS = """
MATCH (e:Expert)-[:WORKED_ON]->(p:Project)
OPTIONAL MATCH (p)-[:FOR_CUSTOMER]->(c:Customer)
WITH e, p, c
WHERE toLower(p.domain) IN $domains OR toLower(c.industry) IN $domains
WITH e, count(DISTINCT p) AS projects
RETURN e.id AS expert_id, projects
ORDER BY projects DESC, expert_id
LIMIT $limit
"""

COLLABORATING_EXPERTS = """
MATCH (e1:Expert {id: $expert_id})-[:WORKED_ON]->(p:Project)<-[:WORKED_ON]-(e2:Expert)
WHERE e2.id <> e1.id
WITH e2, count(DISTINCT p) AS shared
RETURN e2.id AS expert_id, shared
ORDER BY shared DESC, expert_id
LIMIT $limit
"""

# =============================================================================
# Enrichment Queries
# =============================================================================

EXPERT_PROFILES = """
MATCH (e:Expert)
WHERE e.id IN $ids
OPTIONAL MATCH (e)-[w:WORKED_ON]->(p:Project)
OPTIONAL MATCH (p)-[:FOR_CUSTOMER]->(c:Customer)
OPTIONAL MATCH (p)-[:USES_TECHNOLOGY]->(t:Technology)
WITH e, w, p, c, collect(DISTINCT t.name) AS technologies
ORDER BY p.end_date DESC
WITH e, collect(CASE WHEN p IS NULL THEN NULL ELSE {
    name: p.name,
    role: w.role,
    customer: c.name,
    technologies: technologies
} END) AS projects
RETURN e.id AS expert_id, e.name AS name, e.seniority AS seniority,
       e.summary AS summary, projects
"""

# =============================================================================
# Keyword Queries
# =============================================================================

FULLTEXT_EXPERTS = """
CALL db.index.fulltext.queryNodes($index, $query) YIELD node, score
WITH CASE
    WHEN node:Expert THEN node.id
    ELSE head([(expert:Expert)-[:WORKED_ON]->(node) | expert.id])
END AS expert_id, score
WHERE expert_id IS NOT NULL
WITH expert_id, max(score) AS score
RETURN expert_id, score
ORDER BY score DESC, expert_id
LIMIT $limit
"""
