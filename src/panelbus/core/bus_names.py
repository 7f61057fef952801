"""Well-known D-Bus names, paths, interfaces and members."""

FDO_NAME = "org.freedesktop.DBus"
FDO_PATH = "/org/freedesktop/DBus"
FDO_MEMBER_NAME_OWNER_CHANGED = "NameOwnerChanged"
FDO_SIGNAL_NAME_OWNER_CHANGED = FDO_NAME + "." + FDO_MEMBER_NAME_OWNER_CHANGED
FDO_METHOD_LIST_NAMES = "ListNames"
FDO_METHOD_GET_NAME_OWNER = "GetNameOwner"
FDO_METHOD_ADD_MATCH = "AddMatch"

PROPERTIES_NAME = FDO_NAME + ".Properties"
PROPERTIES_MEMBER_CHANGED = "PropertiesChanged"
PROPERTIES_SIGNAL_CHANGED = PROPERTIES_NAME + "." + PROPERTIES_MEMBER_CHANGED
PROPERTIES_METHOD_GET = "Get"
PROPERTIES_METHOD_GET_ALL = "GetAll"

# MPRIS
MEDIA_PLAYER_PATH = "/org/mpris/MediaPlayer2"
MEDIA_PLAYER_NAME = "org.mpris.MediaPlayer2"
PLAYER_NAME = MEDIA_PLAYER_NAME + ".Player"

PLAYER_METHOD_PLAY_PAUSE = "PlayPause"
PLAYER_METHOD_PLAY = "Play"
PLAYER_METHOD_PAUSE = "Pause"
PLAYER_METHOD_NEXT = "Next"
PLAYER_METHOD_PREVIOUS = "Previous"
PLAYER_METHOD_STOP = "Stop"
PLAYER_METHOD_SEEK = "Seek"
PLAYER_METHOD_SET_POSITION = "SetPosition"

# logind
LOGIND_NAME = "org.freedesktop.login1"
LOGIND_PATH = "/org/freedesktop/login1"
LOGIND_MANAGER_NAME = LOGIND_NAME + ".Manager"
LOGIND_MANAGER_METHOD_INHIBIT = "Inhibit"
LOGIND_PROPERTY_BLOCK_INHIBITED = "BlockInhibited"
