"""Prompt synthesis for the oracle.

Three builders, each a pure function of its input:

- ``build_classify_prompt`` asks for ``{projectType, analysis, complexity}``.
- ``build_generate_prompt`` asks for a full project structure document.
- ``build_enhance_prompt`` asks for the complete updated file list given the
  current tree and a new instruction.
"""

from __future__ import annotations

import json
import textwrap
from collections.abc import Iterable

from peaks.filetree import FileNode, tree_payload


ASSISTANT_NAME = "PEAKS AI"

COMPLEXITY_LEVELS = ("simple", "medium", "complex")

KNOWN_PROJECT_TYPES = (
    "React App",
    "Vue App",
    "Website",
    "Web Application",
    "Node.js API",
    "Python Tool",
)

_FILE_NODE_SHAPE = textwrap.dedent("""\
    Each entry of "files" is one of:
      {"name": "<file name>", "type": "file", "content": "<full file content>"}
      {"name": "<folder name>", "type": "folder", "children": [<entries>]}
    Names must be unique inside a folder and must not contain "/".""")

_GENERATION_RULES = textwrap.dedent("""\
    - Include actual working code content for every file, no placeholders
    - Create proper folder structures instead of flat file lists
    - Include an index.html entry point for anything that runs in a browser
    - Supported stacks: React, Vue, Python, Node.js, HTML/CSS/JS, and more
    - Make the code production-ready and functional""")


def _format_project_types() -> str:
    return ", ".join(KNOWN_PROJECT_TYPES)


def _format_current_files(files: Iterable[FileNode]) -> str:
    """Serialise the current tree for inclusion in a prompt."""
    return json.dumps(tree_payload(files), indent=2, ensure_ascii=False)


def build_classify_prompt(message: str) -> str:
    """Prompt asking the oracle to classify a free-text project request."""
    return textwrap.dedent(f"""\
        You are {ASSISTANT_NAME}, an expert software architect. Analyze the user's request and determine:
        1. What type of project they want ({_format_project_types()}, etc.)
        2. Brief analysis of what they're asking for
        3. Complexity level ({'/'.join(COMPLEXITY_LEVELS)})

        Respond in JSON format with keys: "projectType", "analysis", "complexity"

        User request: """) + message.strip()


def build_generate_prompt(message: str, project_type: str) -> str:
    """Prompt asking the oracle for a complete new project structure."""
    header = textwrap.dedent(f"""\
        You are {ASSISTANT_NAME}, an expert full-stack developer. Generate a complete project structure for the user's request.

        Create a JSON response with:
        - type: project type (one of {_format_project_types()}, or a similar recognised label)
        - name: project name
        - description: brief description
        - files: array of file/folder objects with structure and content
        - dependencies: array of required packages
        - commands: object with "install", "dev" and "build" commands

        """)
    return (
        header
        + _FILE_NODE_SHAPE
        + "\n\nRules:\n"
        + _GENERATION_RULES
        + f"\n\nRespond with the JSON document only.\n\nCreate a {project_type} based on this request: "
        + message.strip()
    )


def build_enhance_prompt(
    current_files: Iterable[FileNode],
    message: str,
    project_type: str,
) -> str:
    """Prompt asking the oracle for the complete updated file tree.

    The answer may be either a bare JSON array of entries or an object with a
    ``files`` array; callers accept both shapes.
    """
    header = textwrap.dedent(f"""\
        You are {ASSISTANT_NAME}. The user wants to enhance their existing project.
        Analyze their current files and their new request, then return the updated file structure.

        Current project type: {project_type}
        Return the complete updated file structure as a JSON array, including unchanged files
        exactly as they are. Files you leave out are deleted from the project.

        """)
    return (
        header
        + _FILE_NODE_SHAPE
        + "\n\nCurrent files: "
        + _format_current_files(current_files)
        + "\n\nNew request: "
        + message.strip()
        + "\n\nPlease update the project with the requested changes."
    )
