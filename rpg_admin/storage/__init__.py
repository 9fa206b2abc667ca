"""PostgreSQL storage for the game content tooling (asyncpg).

Schema layout:
  game.*        Live tables the game server reads
    items, perks_info, enemies      staged content (see tooling.*)
    effects                         read-only effect catalogue
    talents_info, concept           edited in place
    world_info                      settlements (+ vendor_inventory,
                                    enchanter_inventory, locations)
    npc                             NPCs
    questchain, quests,             quest graphs, edited in place
    quest_options, quest_option_requirements
    expedition_slides, expedition_options, expedition_outcomes
                                    live expedition graph (filled by merge)
  tooling.*     Staging tables owned by the authoring tool
    items, perks_info, enemies      pending rows: tooling_id, game_id,
                                    action (insert|update), version, approved
    expedition_slides, expedition_options, expedition_outcomes
                                    staged expedition graph with slide_state
  management.*  banned_words, servers (NOTIFY on change)
  public.*      characters, world (read-only, game-server owned)

Staged content flow: create_or_update() writes a pending row,
toggle_approve() flips its approved flag, merge() promotes every approved
row into the live table in one transaction and deletes the pending rows.

Graph saves (save_expedition, save_quest) take client-numbered graphs,
negative ids meaning "new", and return local -> server id mappings.
"""

# Re-export all public symbols so `from rpg_admin import storage` is enough.

from .core import (  # noqa: F401
    CONNECT_ERRORS,
    NotFound,
    StorageError,
    StoreUnavailable,
    ValidationFailed,
    close_pool,
    connect,
    init_pool,
)

from .content import (  # noqa: F401
    CONTENT_TYPES,
    ENEMY,
    ITEM,
    ITEM_TYPES,
    PERK,
    STAT_TYPES,
    ContentType,
    create_or_update,
    get_effects,
    list_live,
    list_pending,
)

from .merge import (  # noqa: F401
    MergeResult,
    merge,
    remove_pending,
    toggle_approve,
)

from .expeditions import (  # noqa: F401
    delete_expedition_option,
    delete_expedition_slide,
    get_expedition,
    merge_expeditions,
    save_expedition,
)

from .quests import (  # noqa: F401
    create_quest,
    delete_quest,
    delete_quest_option,
    get_quests,
    save_quest,
)

from .settlements import (  # noqa: F401
    delete_settlement,
    get_settlements,
    save_settlement,
)

from .npcs import (  # noqa: F401
    create_npc,
    delete_npc,
    get_npcs,
    update_npc,
)

from .moderation import (  # noqa: F401
    add_banned_word,
    delete_banned_word,
    get_banned_words,
)

from .servers import (  # noqa: F401
    create_server,
    get_servers,
)

from .talents import (  # noqa: F401
    get_talents,
    update_talent,
)

from .concept import (  # noqa: F401
    get_concept,
    save_concept,
)
