# Kanban board: task model, drag-and-drop moves, and the task service
#
# Components:
#   schema.py     - Data model (Task, TaskStatus, TaskPriority, ColumnTable)
#   transforms.py - Pure helpers: grouping, ordering, positions, filters, stats
#   card.py       - Task card view model
#   column.py     - Column view model (drop target)
#   board.py      - Drag lifecycle and optimistic move protocol
#   list_view.py  - Sortable, filterable, groupable task table
#   store.py      - SQLite persistence layer (system of record)
#   events.py     - Change feed for inserts, updates and deletes
#   client.py     - HTTP client for kanban_server.py
#   session.py    - Loads a project's tasks and wires a board to a service
#   config.py     - YAML/env configuration
