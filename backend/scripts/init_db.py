#!/usr/bin/env python3
"""
Create the songs and spotify_search_cache tables if they do not exist
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

from db_utils import init_schema


def main() -> bool:
    script = ScriptBase(
        name="init_db",
        description="Create the library matcher database schema"
    )
    script.add_debug_arg()
    script.parse_args()

    script.print_header()
    init_schema()
    return True


if __name__ == "__main__":
    run_script(main)
