# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Paths domain: ordered curricula with derived statistics."""

from learnpath.domains.paths.aggregator import (
    PathAggregate,
    aggregate_nodes,
    overall_difficulty,
    unique_texts,
)
from learnpath.domains.paths.generator import NodeGroup, TemplatePathGenerator, group_nodes
from learnpath.domains.paths.schemas import (
    GenerationSummary,
    LearningPath,
    NodeProgressEntry,
    PathCreate,
    PathFilters,
    PathProgressReport,
    PathUpdate,
)
from learnpath.domains.paths.service import (
    InvalidNodeReferenceError,
    PathNotFoundError,
    PathService,
    PathValidationError,
    ProtectedPathError,
)

__all__ = [
    # Service
    "PathService",
    "TemplatePathGenerator",
    # Aggregation
    "PathAggregate",
    "aggregate_nodes",
    "overall_difficulty",
    "unique_texts",
    "NodeGroup",
    "group_nodes",
    # Schemas
    "LearningPath",
    "PathCreate",
    "PathUpdate",
    "PathFilters",
    "PathProgressReport",
    "NodeProgressEntry",
    "GenerationSummary",
    # Errors
    "PathNotFoundError",
    "InvalidNodeReferenceError",
    "PathValidationError",
    "ProtectedPathError",
]
