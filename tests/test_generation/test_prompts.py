"""Unit tests for prompt synthesis (peaks.generation.prompts)."""

from __future__ import annotations

import json

import pytest

from peaks.filetree import FileNode
from peaks.generation.prompts import (
    ASSISTANT_NAME,
    build_classify_prompt,
    build_enhance_prompt,
    build_generate_prompt,
)


class TestClassifyPrompt:
    @pytest.mark.unit
    def test_contains_request_and_keys(self):
        prompt = build_classify_prompt("Build me a todo app")
        assert ASSISTANT_NAME in prompt
        assert 'Respond in JSON format with keys: "projectType", "analysis", "complexity"' in prompt
        assert prompt.endswith("User request: Build me a todo app")

    @pytest.mark.unit
    def test_lists_complexity_levels(self):
        assert "simple/medium/complex" in build_classify_prompt("x")

    @pytest.mark.unit
    def test_is_deterministic(self):
        assert build_classify_prompt("same") == build_classify_prompt("same")


class TestGeneratePrompt:
    @pytest.mark.unit
    def test_contains_type_and_request(self):
        prompt = build_generate_prompt("a landing page for a bakery", "Website")
        assert prompt.endswith("Create a Website based on this request: a landing page for a bakery")

    @pytest.mark.unit
    def test_describes_expected_document(self):
        prompt = build_generate_prompt("x", "React App")
        for key in ("type:", "name:", "description:", "files:", "dependencies:", "commands:"):
            assert key in prompt
        assert '"type": "folder"' in prompt


class TestEnhancePrompt:
    @pytest.mark.unit
    def test_embeds_current_tree_as_json(self, website_tree):
        prompt = build_enhance_prompt(website_tree, "add a footer", "Website")
        assert "Current project type: Website" in prompt
        assert "New request: add a footer" in prompt
        assert prompt.endswith("Please update the project with the requested changes.")

        start = prompt.index("Current files: ") + len("Current files: ")
        end = prompt.index("\n\nNew request: ")
        embedded = json.loads(prompt[start:end])
        assert [entry["name"] for entry in embedded] == ["index.html", "style.css", "script.js"]

    @pytest.mark.unit
    def test_empty_tree(self):
        prompt = build_enhance_prompt([], "start over", "Website")
        assert "Current files: []" in prompt

    @pytest.mark.unit
    def test_nested_folder_serialised(self):
        tree = [FileNode.folder("src", [FileNode.file("app.js", "let x = 1;")])]
        prompt = build_enhance_prompt(tree, "rename x", "Web Application")
        assert '"children"' in prompt
        assert "let x = 1;" in prompt
