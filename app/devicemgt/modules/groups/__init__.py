"""
Device groups module.

Groups are identified by (name, owner). Membership is a plain association table;
removed devices stay members but are not counted.
"""
