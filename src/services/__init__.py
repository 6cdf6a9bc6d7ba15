"""
Services Module - Business logic for the task distribution service.

Application Services:
- PrincipalService: credential store and unified admin/agent/sub-agent CRUD
- TaskDistributor: even, contiguous-block partition of uploaded rows
- TaskService: task listing, status updates and deletes under the task policy

Infrastructure Services:
- task_import: staging and parsing of uploaded CSV/XLSX/XLS contact lists
- logging_config: structured logging and request correlation
"""
