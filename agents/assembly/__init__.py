"""
Assembly Package

Episode text assembly:
- episode_assembler: slot joining in contract order, scene-order checks, export header
"""

from agents.assembly.episode_assembler import (
    # Assembly
    assemble,
    format_as_episode,
    assembly_summary,
    DEFAULT_SEPARATOR,

    # Scene inspection
    Scene,
    SceneOrderReport,
    parse_scenes,
    check_scene_order,
)

__all__ = [
    # Assembly
    "assemble",
    "format_as_episode",
    "assembly_summary",
    "DEFAULT_SEPARATOR",

    # Scene inspection
    "Scene",
    "SceneOrderReport",
    "parse_scenes",
    "check_scene_order",
]
