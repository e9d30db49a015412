"""
Enrollment - Employee onboarding intake.

Packages:
- enrollment: Settings, Supabase backend, pincode lookup, CLI
- onboarding: Section store, rules, step controller, submission pipeline
"""

__version__ = "1.0.0"
