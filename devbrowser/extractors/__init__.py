from devbrowser.extractors.a11y import INTERACTIVE_ROLES, build_tree, candidates, is_candidate

__all__ = ["INTERACTIVE_ROLES", "build_tree", "candidates", "is_candidate"]
