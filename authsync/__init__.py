"""Auth session synchronization engine: keeps local auth state in step with Supabase."""

__version__ = "0.1.0"
