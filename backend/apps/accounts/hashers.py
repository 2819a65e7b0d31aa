"""
Password hasher with pinned Argon2id cost parameters.
"""

from django.contrib.auth.hashers import Argon2PasswordHasher


class TenantArgon2PasswordHasher(Argon2PasswordHasher):
    """
    Argon2id, 64 MiB memory, 3 iterations, 4 lanes.

    Parameters are fixed so hashes stay comparable across deployments; changing
    them makes Django flag existing hashes for upgrade on next verify.
    """

    time_cost = 3
    memory_cost = 65536
    parallelism = 4
