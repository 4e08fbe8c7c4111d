"""
Built-in tool bodies

- definitions.py: ToolDefinition, ToolCall, ToolResult and friends
- file_operations.py: read_file / write_file / list_files and path validation
- command_executor.py: run_command and the command allow-list

Tools are registered with the ToolRegistry and only ever invoked through the
ToolExecutor, which validates parameters first.
"""
