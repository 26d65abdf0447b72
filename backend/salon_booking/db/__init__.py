# Database package: declarative models, engine/session factory and seed data
