"""
Tool Registry

Catalog of named tool definitions, grouped by category. A fresh registry
comes with the built-in tools:

- read_file   (file)   read a project file
- write_file  (file)   write a project file, optionally backing up the old one
- list_files  (file)   list project files with glob include/exclude
- run_command (system) run an allow-listed command in the project

Re-registering a name replaces the previous definition (last write wins).
"""

from typing import Any, Dict, List, Optional

from migrator.tools import command_executor, file_operations
from migrator.tools.definitions import ToolDefinition
from migrator.utils.logging_config import log_agent


def builtin_tools() -> List[ToolDefinition]:
    return [
        ToolDefinition(
            name="read_file",
            category="file",
            description="Read the content of a file in the project",
            parameters=file_operations.READ_FILE_SCHEMA,
            validator=file_operations.validate_read_params,
            executor=file_operations.read_file,
        ),
        ToolDefinition(
            name="write_file",
            category="file",
            description="Write or modify a file in the project",
            parameters=file_operations.WRITE_FILE_SCHEMA,
            validator=file_operations.validate_write_params,
            executor=file_operations.write_file,
        ),
        ToolDefinition(
            name="list_files",
            category="file",
            description="List files in a project directory",
            parameters=file_operations.LIST_FILES_SCHEMA,
            validator=file_operations.validate_list_params,
            executor=file_operations.list_files,
        ),
        ToolDefinition(
            name="run_command",
            category="system",
            description="Run an allow-listed command in the project directory",
            parameters=command_executor.RUN_COMMAND_SCHEMA,
            validator=command_executor.validate_command_params,
            executor=command_executor.run_command,
        ),
    ]


class ToolRegistry:
    """Name-keyed store of ToolDefinitions with category grouping."""

    def __init__(self, include_builtins: bool = True):
        self._tools: Dict[str, ToolDefinition] = {}
        self._categories: Dict[str, List[str]] = {}
        if include_builtins:
            for tool in builtin_tools():
                self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> ToolDefinition:
        """
        Register (or replace) a tool.

        Raises:
            ValueError: if name, description or parameters is missing
        """
        if not tool.name or not tool.description or not tool.parameters:
            raise ValueError("Tool definition requires name, description and parameters")

        tool.category = tool.category or "general"
        if tool.name in self._tools:
            self._drop_from_category(tool.name)
            log_agent(f"[TOOL_REGISTRY] Replacing tool: {tool.name}", "DEBUG")

        self._tools[tool.name] = tool
        self._categories.setdefault(tool.category, []).append(tool.name)
        return tool

    def _drop_from_category(self, name: str):
        old = self._tools[name]
        names = self._categories.get(old.category, [])
        if name in names:
            names.remove(name)
        if not names:
            self._categories.pop(old.category, None)

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def remove_tool(self, name: str) -> bool:
        if name not in self._tools:
            return False
        self._drop_from_category(name)
        del self._tools[name]
        return True

    def get_all_tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def get_tools_by_category(self, category: str) -> List[ToolDefinition]:
        return [self._tools[name] for name in self._categories.get(category, [])]

    def get_categories(self) -> List[str]:
        return list(self._categories)

    def get_tools_description(self) -> str:
        return "\n".join(f"{tool.name}: {tool.description}" for tool in self._tools.values())

    def get_tools_schema(self) -> List[Dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    def clear(self):
        self._tools.clear()
        self._categories.clear()

    def __len__(self) -> int:
        return len(self._tools)
