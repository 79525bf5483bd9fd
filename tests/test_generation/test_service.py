"""Unit tests for GenerationService (peaks.generation.service).

Every call site must absorb oracle failures into its fallback:
- analyze_request -> generic "Web Application" analysis
- generate_project_structure -> baked-in template
- enhance_project -> unchanged copy of the current tree
"""

from __future__ import annotations

import httpx
import pytest

from peaks.filetree import all_paths, file_map
from peaks.generation import Complexity, GenerationService, default_project_structure


@pytest.fixture
def make_service(make_oracle):
    def _factory(answers=None, default=None):
        client, fake = make_oracle(answers, default)
        return GenerationService(client), fake

    return _factory


# ---------------------------------------------------------------------------
# analyze_request
# ---------------------------------------------------------------------------


class TestAnalyzeRequest:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, make_service):
        service, fake = make_service([
            {"projectType": "React App", "analysis": "Todo list", "complexity": "simple"}
        ])
        analysis = await service.analyze_request("Create a React todo app")
        assert analysis.project_type == "React App"
        assert analysis.complexity is Complexity.SIMPLE
        assert analysis.used_fallback is False
        assert "User request: Create a React todo app" in fake.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oracle_down_falls_back(self, make_service):
        service, _fake = make_service()
        analysis = await service.analyze_request("anything")
        assert analysis.project_type == "Web Application"
        assert analysis.complexity is Complexity.MEDIUM
        assert analysis.used_fallback is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fallback_is_deterministic(self, make_service):
        service, _fake = make_service()
        first = await service.analyze_request("one")
        second = await service.analyze_request("two")
        assert first == second

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_object_answer_falls_back(self, make_service):
        service, _fake = make_service([["React App"]])
        analysis = await service.analyze_request("x")
        assert analysis.used_fallback is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remote_failure_falls_back(self, make_service):
        service, _fake = make_service([httpx.Response(200, json={"success": False, "error": "nope"})])
        analysis = await service.analyze_request("x")
        assert analysis.used_fallback is True


# ---------------------------------------------------------------------------
# generate_project_structure
# ---------------------------------------------------------------------------


class TestGenerateProjectStructure:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, make_service):
        service, fake = make_service([{
            "type": "Website",
            "name": "Bakery",
            "files": [{"name": "index.html", "type": "file", "content": "<h1>Bread</h1>"}],
        }])
        result = await service.generate_project_structure("bakery site", "Website")
        assert result.used_fallback is False
        assert file_map(result.files) == {"index.html": "<h1>Bread</h1>"}
        assert "Create a Website based on this request: bakery site" in fake.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bare_file_list_accepted(self, make_service):
        service, _fake = make_service([[{"name": "main.py", "type": "file", "content": "print(1)"}]])
        result = await service.generate_project_structure("script", "Python Tool")
        assert result.project_type == "Python Tool"
        assert all_paths(result.files) == ["main.py"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_type_filled_from_request(self, make_service):
        service, _fake = make_service([{"files": [{"name": "a.js", "type": "file"}]}])
        result = await service.generate_project_structure("x", "Node.js API")
        assert result.project_type == "Node.js API"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_react_fallback_when_oracle_down(self, make_service):
        service, _fake = make_service()
        result = await service.generate_project_structure("Create a React App", "React App")
        assert result.used_fallback is True
        assert result.files == default_project_structure("React App").files

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_type_falls_back_to_website(self, make_service):
        service, _fake = make_service()
        result = await service.generate_project_structure("x", "Rust CLI")
        assert all_paths(result.files) == ["index.html", "style.css", "script.js"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_tree_falls_back(self, make_service):
        service, _fake = make_service([{
            "type": "Website",
            "files": [{"name": "a/b.html", "type": "file"}],
        }])
        result = await service.generate_project_structure("x", "Website")
        assert result.used_fallback is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_files_falls_back(self, make_service):
        service, _fake = make_service([{"type": "Website", "files": []}])
        result = await service.generate_project_structure("x", "Website")
        assert result.used_fallback is True
        assert result.files


# ---------------------------------------------------------------------------
# enhance_project
# ---------------------------------------------------------------------------


class TestEnhanceProject:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_with_bare_list(self, make_service, website_tree):
        updated = [n.to_payload() for n in website_tree] + [
            {"name": "about.html", "type": "file", "content": "<p>About</p>"}
        ]
        service, fake = make_service([updated])
        files, used_fallback = await service.enhance_project(website_tree, "add about page", "Website")
        assert used_fallback is False
        assert all_paths(files)[-1] == "about.html"
        assert "New request: add about page" in fake.prompts[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_with_files_object(self, make_service, website_tree):
        service, _fake = make_service([{"files": [{"name": "index.html", "type": "file"}]}])
        files, used_fallback = await service.enhance_project(website_tree, "strip it", "Website")
        assert used_fallback is False
        assert all_paths(files) == ["index.html"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_returns_identical_copy(self, make_service, website_tree):
        service, _fake = make_service()
        files, used_fallback = await service.enhance_project(website_tree, "x", "Website")
        assert used_fallback is True
        assert files == website_tree
        assert files[0] is not website_tree[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_answer_is_a_failure(self, make_service, website_tree):
        service, _fake = make_service([[]])
        files, used_fallback = await service.enhance_project(website_tree, "x", "Website")
        assert used_fallback is True
        assert files == website_tree

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unusable_shape_is_a_failure(self, make_service, website_tree):
        service, _fake = make_service([{"message": "done!"}])
        _files, used_fallback = await service.enhance_project(website_tree, "x", "Website")
        assert used_fallback is True
