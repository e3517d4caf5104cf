# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Session file locator

Finds conversation files in the Claude Code storage layout:
<projects_dir>/<encoded project path>/<session id>.jsonl
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .errors import SessionNotFound

logger = logging.getLogger(__name__)

_ENCODE_PATTERN = re.compile(r'[/.]')


def encode_project_path(project_path: str) -> str:
    """
    Encode a project path into its directory name

    Claude Code replaces '/' and '.' with '-'
    (e.g., /home/yos/.config/wezterm → -home-yos--config-wezterm).
    """
    return _ENCODE_PATTERN.sub('-', project_path)


@dataclass(frozen=True)
class SessionFile:
    session_id: str
    path: Path
    project_dir: Path


class SessionLocator:
    """Class for locating session files under the projects directory"""

    def __init__(self, projects_dir: Union[str, Path]):
        """
        Args:
            projects_dir: Path to Claude projects directory
        """
        self.projects_dir = Path(projects_dir)

    def list_projects(self) -> List[Path]:
        """Project directories that contain at least one JSONL file"""
        if not self.projects_dir.exists():
            return []

        projects = []
        for project_dir in sorted(self.projects_dir.iterdir()):
            if project_dir.is_dir() and any(project_dir.glob('*.jsonl')):
                projects.append(project_dir)
        return projects

    def list_sessions(self, project_dir: Union[str, Path]) -> List[SessionFile]:
        """Session files of one project directory, sorted by session ID"""
        project_dir = Path(project_dir)
        if not project_dir.is_absolute() and not project_dir.exists():
            project_dir = self.projects_dir / project_dir
        return [
            SessionFile(session_id=path.stem, path=path, project_dir=project_dir)
            for path in sorted(project_dir.glob('*.jsonl'))
        ]

    def session_path(self, cwd: str, session_id: str) -> Path:
        """Expected file path for a session started in cwd"""
        return self.projects_dir / encode_project_path(cwd) / f"{session_id}.jsonl"

    def find_session(self, session_id: str) -> SessionFile:
        """
        Search for a session file from session ID (prefix match)

        Args:
            session_id: Session ID (exact match or prefix match)

        Returns:
            The single matching SessionFile

        Raises:
            SessionNotFound: No match, or more than one
        """
        matches: List[SessionFile] = []
        if self.projects_dir.exists():
            for project_dir in self.projects_dir.iterdir():
                if not project_dir.is_dir():
                    continue
                for jsonl_file in project_dir.glob(f"{session_id}*.jsonl"):
                    matches.append(SessionFile(
                        session_id=jsonl_file.stem,
                        path=jsonl_file,
                        project_dir=project_dir
                    ))

        # An exact match wins over longer IDs sharing the prefix
        exact = [m for m in matches if m.session_id == session_id]
        if len(exact) == 1:
            return exact[0]
        if len(matches) != 1:
            raise SessionNotFound(session_id, len(matches))
        return matches[0]

    @staticmethod
    def read_cwd(jsonl_path: Path) -> Optional[str]:
        """Get cwd from the first record of a JSONL file that has one"""
        try:
            with open(jsonl_path, 'r', encoding='utf-8', errors='replace') as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if isinstance(data, dict) and isinstance(data.get('cwd'), str):
                        return data['cwd']
        except OSError as e:
            logger.debug("Cannot read %s: %s", jsonl_path, e)
        return None
