"""
Coordinator Matching Agent

The sheet records the coordinator by last name only; users are stored with
full names. Matching is exact first, then a unique prefix match.
"""

from typing import Dict, List, Optional


class CoordinatorMatcher:
    def __init__(self, users: List[Dict[str, str]]):
        self.users = [u for u in users if u.get("name")]
        self.by_name = {u["name"]: u["id"] for u in self.users}

    def match(self, last_name: Optional[str]) -> Optional[str]:
        """
        Resolve a sheet last name to a user id.

        Args:
            last_name: Coordinator name as typed in the sheet

        Returns:
            User id, or None when there is no match or the prefix is ambiguous
        """
        name = (last_name or "").strip()
        if not name:
            return None
        if name in self.by_name:
            return self.by_name[name]
        candidates = [u for u in self.users if u["name"].startswith(name)]
        if len(candidates) == 1:
            return candidates[0]["id"]
        return None
