"""Baked-in project templates used when generation cannot reach the oracle.

Two templates exist: a minimal React app and a minimal static website. Any
project type other than the exact ``"React App"`` label falls back to the
website template.
"""

from __future__ import annotations

import json
import textwrap

from peaks.filetree import FileNode
from peaks.generation.models import GenerationResult, ProjectCommands


REACT_APP = "React App"
WEBSITE = "Website"

_REACT_PACKAGE_JSON = json.dumps(
    {
        "name": "react-app",
        "version": "1.0.0",
        "dependencies": {
            "react": "^18.2.0",
            "react-dom": "^18.2.0",
        },
        "scripts": {
            "dev": "vite",
            "build": "vite build",
        },
    },
    indent=2,
)

_REACT_APP_JSX = textwrap.dedent("""\
    function App() {
      return (
        <div className="app">
          <h1>Welcome to Your React App</h1>
          <p>Built with PEAKS AI</p>
        </div>
      );
    }

    export default App;""")

_REACT_MAIN_JSX = textwrap.dedent("""\
    import React from 'react';
    import ReactDOM from 'react-dom/client';
    import App from './App';
    import './index.css';

    ReactDOM.createRoot(document.getElementById('root')).render(
      <React.StrictMode>
        <App />
      </React.StrictMode>
    );""")

_REACT_INDEX_CSS = textwrap.dedent("""\
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      margin: 0;
      padding: 0;
      background: #f5f5f5;
    }

    .app {
      text-align: center;
      padding: 2rem;
    }

    h1 {
      color: #333;
      margin-bottom: 1rem;
    }""")

_REACT_INDEX_HTML = textwrap.dedent("""\
    <!DOCTYPE html>
    <html lang="en">
    <head>
      <meta charset="UTF-8">
      <meta name="viewport" content="width=device-width, initial-scale=1.0">
      <title>React App</title>
    </head>
    <body>
      <div id="root"></div>
      <script type="module" src="/src/main.jsx"></script>
    </body>
    </html>""")

_WEBSITE_INDEX_HTML = textwrap.dedent("""\
    <!DOCTYPE html>
    <html lang="en">
    <head>
      <meta charset="UTF-8">
      <meta name="viewport" content="width=device-width, initial-scale=1.0">
      <title>My Website</title>
      <link rel="stylesheet" href="style.css">
    </head>
    <body>
      <header>
        <h1>Welcome to My Website</h1>
      </header>
      <main>
        <p>Built with PEAKS AI</p>
      </main>
      <script src="script.js"></script>
    </body>
    </html>""")

_WEBSITE_STYLE_CSS = textwrap.dedent("""\
    * {
      margin: 0;
      padding: 0;
      box-sizing: border-box;
    }

    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
      line-height: 1.6;
      color: #333;
    }

    header {
      background: #6366f1;
      color: white;
      text-align: center;
      padding: 2rem;
    }

    main {
      padding: 2rem;
      text-align: center;
    }""")

_WEBSITE_SCRIPT_JS = textwrap.dedent("""\
    document.addEventListener('DOMContentLoaded', function() {
      console.log('Website loaded successfully!');
    });""")


def react_app_template() -> GenerationResult:
    """Minimal Vite + React application."""
    return GenerationResult(
        project_type=REACT_APP,
        name="React Application",
        description="A modern React application",
        files=[
            FileNode.file("package.json", _REACT_PACKAGE_JSON),
            FileNode.folder("src", [
                FileNode.file("App.jsx", _REACT_APP_JSX),
                FileNode.file("main.jsx", _REACT_MAIN_JSX),
                FileNode.file("index.css", _REACT_INDEX_CSS),
            ]),
            FileNode.file("index.html", _REACT_INDEX_HTML),
        ],
        dependencies=["react", "react-dom", "vite"],
        commands=ProjectCommands(install="npm install", dev="npm run dev", build="npm run build"),
    )


def website_template() -> GenerationResult:
    """Minimal static HTML/CSS/JS website."""
    return GenerationResult(
        project_type=WEBSITE,
        name="Website",
        description="A modern website",
        files=[
            FileNode.file("index.html", _WEBSITE_INDEX_HTML),
            FileNode.file("style.css", _WEBSITE_STYLE_CSS),
            FileNode.file("script.js", _WEBSITE_SCRIPT_JS),
        ],
    )


_TEMPLATES = {
    REACT_APP: react_app_template,
    WEBSITE: website_template,
}


def default_project_structure(project_type: str) -> GenerationResult:
    """Return a fresh copy of the template for *project_type*.

    Unknown types get the website template. The result is flagged with
    ``used_fallback=True``.
    """
    factory = _TEMPLATES.get(project_type, website_template)
    result = factory()
    result.used_fallback = True
    return result
