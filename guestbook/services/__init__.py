# Services package.
#
#   visitor_service  — login-or-register, profile, role changes
#   comment_service  — submission, listings and moderation
#
# Every service function takes the AsyncSession as its first argument;
# the router layer owns the transaction through the ``get_db``
# dependency, so services flush but never commit.
