from datetime import datetime, timedelta

# Bangladesh Standard Time, no daylight saving
BST_OFFSET = timedelta(hours=6)


def get_bst_now():
    """
    Returns the current datetime in Bangladesh Standard Time (BST)
    BST is UTC+6
    """
    return datetime.utcnow() + BST_OFFSET


def convert_to_bst(dt):
    """
    Converts a naive UTC datetime object to BST
    """
    if dt is None:
        return None
    return dt + BST_OFFSET


def format_bst_datetime(dt, format_str="%d %b %Y, %I:%M %p"):
    """
    Formats a naive UTC datetime object as a BST string
    """
    if dt is None:
        return None
    return convert_to_bst(dt).strftime(format_str)
