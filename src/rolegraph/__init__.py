from .aggregator import PermissionAggregator
from .builder import RoleMapBuild, RoleMapBuilder, compose_path_roles, merge_role_maps
from .cache import (
    RoleMapCache,
    container_tag,
    hierarchy_tag,
    membership_tag,
    relation_type_tag,
    role_tag,
)
from .config import LogLevel, RoleGraphConfig, load_config_from_env
from .exceptions import (
    CacheStoreError,
    ConfigurationError,
    CycleDetectedError,
    HierarchyError,
    PathLimitExceededError,
    RoleGraphError,
    UnknownContainerError,
    error_registry,
    register_error,
)
from .graph import InMemoryHierarchy
from .interfaces import (
    PERMANENT,
    CacheItem,
    GraphProvider,
    MembershipSource,
    RelationConfigProvider,
    RoleDirectory,
    TaggedCacheStore,
)
from .logging import (
    RoleGraphFormatter,
    RoleGraphLoggerAdapter,
    get_role_graph_logger,
    safe_preview,
    setup_logging,
)
from .models import (
    CalculatedPermissions,
    Container,
    PermissionGrant,
    Principal,
    Relation,
    RelationMappingConfig,
    Role,
    RoleMap,
    RoleScope,
    freeze_role_map,
    thaw_role_map,
)
from .stores import (
    InMemoryMemberships,
    create_cache_store,
    InMemoryRelationConfigs,
    InMemoryRoleDirectory,
    MemoryTagCache,
)

__all__ = [
    'PermissionAggregator',
    'RoleMapBuild',
    'RoleMapBuilder',
    'compose_path_roles',
    'merge_role_maps',
    'RoleMapCache',
    'container_tag',
    'hierarchy_tag',
    'membership_tag',
    'relation_type_tag',
    'role_tag',
    'LogLevel',
    'RoleGraphConfig',
    'load_config_from_env',
    'CacheStoreError',
    'ConfigurationError',
    'CycleDetectedError',
    'HierarchyError',
    'PathLimitExceededError',
    'RoleGraphError',
    'UnknownContainerError',
    'error_registry',
    'register_error',
    'InMemoryHierarchy',
    'PERMANENT',
    'CacheItem',
    'GraphProvider',
    'MembershipSource',
    'RelationConfigProvider',
    'RoleDirectory',
    'TaggedCacheStore',
    'RoleGraphFormatter',
    'RoleGraphLoggerAdapter',
    'get_role_graph_logger',
    'safe_preview',
    'setup_logging',
    'CalculatedPermissions',
    'Container',
    'PermissionGrant',
    'Principal',
    'Relation',
    'RelationMappingConfig',
    'Role',
    'RoleMap',
    'RoleScope',
    'freeze_role_map',
    'thaw_role_map',
    'InMemoryMemberships',
    'InMemoryRelationConfigs',
    'InMemoryRoleDirectory',
    'MemoryTagCache',
    'create_cache_store',
]
