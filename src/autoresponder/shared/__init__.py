"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (intake, analysis, responses, tickets, notifications).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models are extended within each module

DO NOT add pipeline business logic to the shared kernel.
"""
