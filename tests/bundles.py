"""Synthetic minified-bundle fragments shaped like the real targets."""

PAD = 'var pad="' + "p" * 1000 + '";'

VERBOSE = (
    "V.createElement(Sp,{mode:q,spinnerTip:W,overrideMessage:Y,verbose:Z});"
)

CONTEXT_LOW = (
    "function Zx(A){let{tokenUsage:Q,isLoading:D}=A;"
    "if(!Q||D)return null;"
    'return V.createElement(T,{color:"warning"},'
    '"Context low (",B,"% remaining) · Run /compact to compact & continue")}'
)

ESC_INTERRUPT = (
    'function Hint(){return V.createElement(Row,null,'
    '...H1?[{key:"esc"},"foo","to interrupt"]:[])}'
)

SIGNAL_INIT = (
    'var Ab=Yb(()=>{process.on("SIGINT",()=>{process.exit(0)});'
    'process.on("SIGTERM",()=>{process.exit(143)})});'
)

STATUSLINE_FN = (
    "async function VZA(A,B){let Q=nA()?.statusLine;if(!Q)return;await Ye1(Q,B)}"
)

MAIN = "Xy(async()=>{try{Ab();await run()}catch(e){log(e)}});"

STATUSLINE = SIGNAL_INIT + STATUSLINE_FN + MAIN

INJECTED = "setInterval(function(){try{VZA({})}catch(e){}},30000);"

FULL = PAD.join(["", VERBOSE, ESC_INTERRUPT, CONTEXT_LOW, STATUSLINE, ""])
