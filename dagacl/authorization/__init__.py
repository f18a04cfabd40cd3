"""ACL framework for AM and DAG access control.

This package decides whether an already authenticated user may view or modify
the application master (AM) or a single DAG running inside it.

The framework consists of:
- ACL types: The four protected actions (AM/DAG x view/modify)
- Parser: Turns "users groups" ACL strings from configuration into allow-lists
- Group mappings: Resolve a user name into the set of its group names
- ACL manager: Answers access checks and renders application ACLs
"""
