"""
Halyard zsh adapter: a protocol-driven script feeding `_describe`.
"""
from .completions import (
    ACTIVE_HELP_MARKER,
    COMPLETE_NO_DESC_REQUEST,
    COMPLETE_REQUEST,
    ScriptTemplate,
    directive_values,
)
from .utils import *

_SCRIPT = ScriptTemplate(r"""#compdef @{NAME}
compdef _@{VARNAME} @{NAME}

# zsh completion for @{NAME}                                 -*- shell-script -*-

__@{VARNAME}_debug()
{
    local file="$BASH_COMP_DEBUG_FILE"
    if [[ -n ${file} ]]; then
        echo "$*" >> "${file}"
    fi
}

_@{VARNAME}()
{
    local shellCompDirectiveError=@{ERROR}
    local shellCompDirectiveNoSpace=@{NO_SPACE}
    local shellCompDirectiveNoFileComp=@{NO_FILE_COMP}
    local shellCompDirectiveFilterFileExt=@{FILTER_FILE_EXT}
    local shellCompDirectiveFilterDirs=@{FILTER_DIRS}
    local shellCompDirectiveKeepOrder=@{KEEP_ORDER}

    local lastParam lastChar flagPrefix requestComp out directive comp lastComp noSpace keepOrder
    local -a completions

    __@{VARNAME}_debug "\n========= starting completion logic =========="
    __@{VARNAME}_debug "CURRENT: ${CURRENT}, words[*]: ${words[*]}"

    # Completion happens at $CURRENT, which may be before the end of the line.
    words=("${=words[1,CURRENT]}")
    __@{VARNAME}_debug "Truncated words[*]: ${words[*]},"

    lastParam=${words[-1]}
    lastChar=${lastParam[-1]}
    __@{VARNAME}_debug "lastParam: ${lastParam}, lastChar: ${lastChar}"

    # candidates for --flag=<TAB> must carry the flag as a prefix
    setopt local_options BASH_REMATCH
    if [[ "${lastParam}" =~ '-.*=' ]]; then
        flagPrefix="-P ${BASH_REMATCH}"
    fi

    requestComp="${words[1]} @{REQUEST} ${words[2,-1]}"
    if [ "${lastChar}" = "" ]; then
        # The last word is complete; an empty argument says so to the program.
        __@{VARNAME}_debug "Adding extra empty parameter"
        requestComp="${requestComp} \"\""
    fi

    __@{VARNAME}_debug "About to call: eval ${requestComp}"

    out=$(eval ${requestComp} 2>/dev/null)
    __@{VARNAME}_debug "completion output: ${out}"

    # The directive sits on the last line, after a colon.
    local lastLine
    while IFS='\n' read -r line; do
        lastLine=${line}
    done < <(printf "%s\n" "${out[@]}")
    __@{VARNAME}_debug "last line: ${lastLine}"

    if [ "${lastLine[1]}" = : ]; then
        directive=${lastLine[2,-1]}
        local suffix
        (( suffix=${#lastLine}+2))
        out=${out[1,-$suffix]}
    else
        __@{VARNAME}_debug "No directive found.  Setting do default"
        directive=0
    fi

    __@{VARNAME}_debug "directive: ${directive}"
    __@{VARNAME}_debug "completions: ${out}"
    __@{VARNAME}_debug "flagPrefix: ${flagPrefix}"

    if [ $((directive & shellCompDirectiveError)) -ne 0 ]; then
        __@{VARNAME}_debug "Completion received error. Ignoring completions."
        return
    fi

    local activeHelpMarker="@{MARKER}"
    local endIndex=${#activeHelpMarker}
    local startIndex=$((${#activeHelpMarker}+1))
    local hasActiveHelp=0
    while IFS='\n' read -r comp; do
        if [ "${comp[1,$endIndex]}" = "$activeHelpMarker" ];then
            __@{VARNAME}_debug "ActiveHelp found: $comp"
            comp="${comp[$startIndex,-1]}"
            if [ -n "$comp" ]; then
                compadd -x "${comp}"
                __@{VARNAME}_debug "ActiveHelp will need delimiter"
                hasActiveHelp=1
            fi

            continue
        fi

        if [ -n "$comp" ]; then
            # _describe separates descriptions with ':' so literal colons are escaped first.
            comp=${comp//:/\\:}

            local tab="$(printf '\t')"
            comp=${comp//$tab/:}

            __@{VARNAME}_debug "Adding completion: ${comp}"
            completions+=${comp}
            lastComp=$comp
        fi
    done < <(printf "%s\n" "${out[@]}")

    # A delimiter follows the hints only when choices will be listed after them.
    if [ $hasActiveHelp -eq 1 ]; then
        if [ ${#completions} -ne 0 ] || [ $((directive & shellCompDirectiveNoFileComp)) -eq 0 ]; then
            __@{VARNAME}_debug "Adding activeHelp delimiter"
            compadd -x "--"
            hasActiveHelp=0
        fi
    fi

    if [ $((directive & shellCompDirectiveNoSpace)) -ne 0 ]; then
        __@{VARNAME}_debug "Activating nospace."
        noSpace="-S ''"
    fi

    if [ $((directive & shellCompDirectiveKeepOrder)) -ne 0 ]; then
        __@{VARNAME}_debug "Activating keep order."
        keepOrder="-V"
    fi

    if [ $((directive & shellCompDirectiveFilterFileExt)) -ne 0 ]; then
        local filteringCmd
        filteringCmd='_files'
        for filter in ${completions[@]}; do
            if [ ${filter[1]} != '*' ]; then
                # zsh filters with glob patterns
                filter="\*.$filter"
            fi
            filteringCmd+=" -g $filter"
        done
        filteringCmd+=" ${flagPrefix}"

        __@{VARNAME}_debug "File filtering command: $filteringCmd"
        _arguments '*:filename:'"$filteringCmd"
    elif [ $((directive & shellCompDirectiveFilterDirs)) -ne 0 ]; then
        local subdir
        subdir="${completions[1]}"
        if [ -n "$subdir" ]; then
            __@{VARNAME}_debug "Listing directories in $subdir"
            pushd "${subdir}" >/dev/null 2>&1
        else
            __@{VARNAME}_debug "Listing directories in ."
        fi

        local result
        _arguments '*:dirname:_files -/'" ${flagPrefix}"
        result=$?
        if [ -n "$subdir" ]; then
            popd >/dev/null 2>&1
        fi
        return $result
    else
        __@{VARNAME}_debug "Calling _describe"
        if eval _describe $keepOrder "completions" completions $flagPrefix $noSpace; then
            __@{VARNAME}_debug "_describe found some completions"
            return 0
        else
            __@{VARNAME}_debug "_describe did not find completions."
            __@{VARNAME}_debug "Checking if we should do file completion."
            if [ $((directive & shellCompDirectiveNoFileComp)) -ne 0 ]; then
                __@{VARNAME}_debug "deactivating file completion"

                # A failure status lets zsh try its other matchers.
                return 1
            else
                __@{VARNAME}_debug "Activating file completion"
                _arguments '*:filename:_files'" ${flagPrefix}"
            fi
        fi
    fi
}

# only run when autoloaded, not when sourced or evaluated
if [ "$funcstack[1]" = "_@{VARNAME}" ]; then
    _@{VARNAME}
fi
""")


def generate(root, /, *, descriptions=True):
    """Render the zsh script for the program rooted at `root`."""
    return _SCRIPT.safe_substitute(
        NAME=root.name,
        VARNAME=varname(root.name),
        REQUEST=COMPLETE_REQUEST if descriptions else COMPLETE_NO_DESC_REQUEST,
        MARKER=ACTIVE_HELP_MARKER,
        **directive_values(),
    )


__all__ = (
    "generate",
)
