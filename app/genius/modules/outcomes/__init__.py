"""
Journey outcomes module.

- Outcome history per client (paid / ghosted / pending / negotiating / declined)
- Aggregate notes and tags, searchable from /dashboard/notes
"""
