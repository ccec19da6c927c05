from __future__ import annotations
import os
from petcare import create_app

def main() -> None:
    flask_app = create_app()

    # show what routes are actually mounted
    flask_app.logger.info("Mounted routes:\n%s", "\n".join(
        str(rule) for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule)
    ))

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)

if __name__ == "__main__":
    main()
