from __future__ import annotations

from jewel_assist.runtime.lifecycle import main

if __name__ == "__main__":
    raise SystemExit(main())
