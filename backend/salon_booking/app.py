import logging
import os

from salon_booking.db.seed import seed_demo_data
from salon_booking.main import create_app

logger = logging.getLogger(__name__)

# Create Flask app
app = create_app()

if __name__ == "__main__":
    # Seed demo stations, hours and rules when requested
    if os.getenv("SEED_DEMO_DATA", "0").lower() in ("1", "true", "yes"):
        seed_demo_data()

    # Use PORT from environment or default to 5000 (for local dev)
    port = int(os.getenv("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_ENV") != "production")
