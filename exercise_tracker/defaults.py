DEFAULT_SECTION = "General"


def default_document():
    return {DEFAULT_SECTION: []}
